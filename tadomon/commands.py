"""Slash commands answered by the chat bot."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Mapping, Optional

from tadomon.state import TERMINATION_MANUAL, Update, UpdateStore, Zone


class NoUpdatesError(Exception):
    """Raised when a command needs home data before any has been received."""

    def __init__(self, message: str = "no updates yet. please check back later") -> None:
        super().__init__(message)


@dataclass
class Attachment:
    """A titled block of lines posted back to the chat."""

    header: str = ""
    body: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.header and not self.body

    def format(self) -> dict[str, Any]:
        """The attachment as a chat message payload."""
        return {"attachments": [{"title": self.header, "text": "\n".join(self.body)}]}


class CommandRunner(UpdateStore):
    """Answers the '/tado' slash command."""

    def __init__(
        self,
        tado_client: Any = None,
        poller: Any = None,
        controller: Any = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__()
        self.tado_client = tado_client
        self.poller = poller
        self.controller = controller
        self.logger = logger or logging.getLogger(__name__)
        self._commands: dict[str, Callable[[], Attachment]] = {
            "rooms": self.list_rooms,
            "users": self.list_users,
            "rules": self.list_rules,
            "refresh": self.refresh,
            "help": self.help,
        }

    def dispatch(self, command: Mapping[str, Any], sender: Any) -> None:
        """Run the command and post its output privately to the caller."""
        text = command.get("text", "")
        self.logger.debug("running command cmd=%s text=%s", command.get("command"), text)
        handler = self._commands.get(text)
        if handler is None:
            raise ValueError("unknown command: " + text)
        response = handler()
        if not response.is_empty():
            sender.post_ephemeral(
                command.get("channel_id", ""), command.get("user_id", ""), response.format()
            )

    def _latest(self) -> Update:
        update = self.get_update()
        if update is None:
            raise NoUpdatesError()
        return update

    def list_rooms(self) -> Attachment:
        update = self._latest()
        lines = sorted(
            f"*{zone.name}*: {zone.inside_celsius or 0.0:.1f}ºC ({zone_state(zone)})"
            for zone in update.zones
        )
        return Attachment("Rooms:", lines or ["no rooms have been found"])

    def list_users(self) -> Attachment:
        update = self._latest()
        lines = sorted(
            f"*{device.name}*: {'home' if device.at_home else 'away'}"
            for device in update.geo_tracked_devices()
        )
        return Attachment("Users:", lines or ["no users have been found"])

    def list_rules(self) -> Attachment:
        if self.controller is None:
            raise RuntimeError("controller isn't running")
        rules = sorted(self.controller.report_tasks() or [])
        return Attachment("Rules:", rules or ["no rules have been triggered"])

    def refresh(self) -> Attachment:
        self.poller.refresh()
        return Attachment()

    def help(self) -> Attachment:
        return Attachment("Supported commands:", ["users, rooms, rules, help"])


def zone_state(zone: Zone) -> str:
    """Describe a zone's target temperature and any manual override."""
    target = zone.target_temperature()
    if target == 0.0:
        return "off"
    if zone.overlay is None:
        return f"target: {target:.1f}"
    if zone.overlay.termination_type == TERMINATION_MANUAL:
        return f"target: {target:.1f}, MANUAL"
    remaining = timedelta(seconds=zone.overlay.remaining_seconds or 0)
    return f"target: {target:.1f}, MANUAL for {_duration_string(remaining)}"


def _duration_string(duration: timedelta) -> str:
    """Render a duration as e.g. '1h30m0s', '5m0s' or '1.5s'."""
    nanoseconds = duration // timedelta(microseconds=1) * 1000
    if nanoseconds == 0:
        return "0s"
    sign = "-" if nanoseconds < 0 else ""
    value = abs(nanoseconds)
    if value < 1_000_000_000:
        for unit, scale in (("ns", 1), ("µs", 1_000), ("ms", 1_000_000)):
            if value < scale * 1000:
                return sign + _decimal(value, scale) + unit
    seconds, remainder = divmod(value, 1_000_000_000)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    text = _decimal(seconds * 1_000_000_000 + remainder, 1_000_000_000) + "s"
    if hours:
        text = f"{hours}h{minutes}m{text}"
    elif minutes:
        text = f"{minutes}m{text}"
    return sign + text


def _decimal(value: int, scale: int) -> str:
    whole, rest = divmod(value, scale)
    if not rest:
        return str(whole)
    digits = str(rest).rjust(len(str(scale)) - 1, "0").rstrip("0")
    return f"{whole}.{digits}"