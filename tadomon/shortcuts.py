"""Interactive shortcuts (modal dialogs) offered by the chat bot."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, Optional

from tadomon.commands import NoUpdatesError, _duration_string
from tadomon.state import PRESENCE_AWAY, PRESENCE_HOME, TERMINATION_MANUAL, TERMINATION_TIMER
from tadomon.state import Update, UpdateStore

SET_ROOM_CALLBACK_ID = "tado_set_room"
SET_HOME_CALLBACK_ID = "tado_set_home"

INTERACTION_SHORTCUT = "shortcut"
INTERACTION_BLOCK_ACTIONS = "block_actions"
INTERACTION_VIEW_SUBMISSION = "view_submission"

_CLOCK = re.compile(r"([0-9]{1,2}):([0-9]{2})")


class Shortcuts(dict):
    """Shortcut handlers keyed by their callback ID."""

    def dispatch(self, data: Mapping[str, Any], sender: Any) -> None:
        """Route an interaction to the handler that owns its callback ID."""
        kind = data.get("type")
        if kind == INTERACTION_SHORTCUT:
            callback_id = data.get("callback_id", "")
        elif kind in (INTERACTION_BLOCK_ACTIONS, INTERACTION_VIEW_SUBMISSION):
            callback_id = _dig(data, "view", "callback_id") or ""
        else:
            callback_id = ""
        handler = self.get(callback_id)
        if handler is None:
            raise LookupError(f'unknown callbackID: "{data.get("callback_id", "")}"')
        if kind == INTERACTION_SHORTCUT:
            handler.handle_shortcut(data, sender)
        elif kind == INTERACTION_BLOCK_ACTIONS:
            handler.handle_action(data, sender)
        elif kind == INTERACTION_VIEW_SUBMISSION:
            handler.handle_submission(data, sender)

    def set_update(self, update: Update) -> None:
        for handler in self.values():
            handler.set_update(update)


class SetRoomShortcut(UpdateStore):
    """Dialog that sets a room to auto mode or to a manual temperature."""

    def __init__(
        self,
        tado_client: Any = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        super().__init__()
        self.tado_client = tado_client
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock

    def handle_shortcut(self, data: Mapping[str, Any], sender: Any) -> None:
        _open_view(self.logger, data, sender, self.make_view("auto", self.get_update()))

    def handle_action(self, data: Mapping[str, Any], sender: Any) -> None:
        view_id = _dig(data, "view", "id") or ""
        for action in data.get("actions") or ():
            action_id = action.get("action_id", "")
            block_id = action.get("block_id", "")
            value = (action.get("selected_option") or {}).get("value", "")
            self.logger.debug(
                "action received viewID=%s actionID=%s blockID=%s value=%s",
                view_id, action_id, block_id, value,
            )
            if action_id != "mode":
                raise ValueError(f'unknown actionID: "{block_id}"/"{action_id}"')
            try:
                sender.update_view(self.make_view(value, self.get_update()), "", "", view_id)
            except Exception as err:
                raise RuntimeError(f"failed to update view: {err}") from err

    def handle_submission(self, data: Mapping[str, Any], sender: Any) -> None:
        _submit(self.logger, data, sender, self.set_room, "failed to set room: ")

    def set_room(self, data: Mapping[str, Any]) -> tuple[str, str]:
        """Apply the submitted dialog; return the reply channel and a description."""
        zone_name = _selected(data, "zone")
        mode = _selected(data, "mode")
        temperature = _state(data, "temperature").get("value") or ""
        due = _state(data, "expiration").get("selected_time") or ""
        channel = _channel(data)
        home_id = _home_id(self.get_update())

        action = ""
        if mode == "manual":
            try:
                celsius = float(temperature)
            except ValueError:
                celsius = 0.0
            action = f"set *{zone_name}* to {temperature}ºC"
            duration = timedelta(0)
            if due:
                try:
                    duration = time_stamp_to_duration(due, self.clock())
                except ValueError as err:
                    raise ValueError(f'failed to parse due time "{due}": {err}') from err
                action += " for " + _duration_string(_round_to_minute(duration))
            zone_id = self._zone_id(zone_name)
            self.tado_client.set_zone_overlay(home_id, zone_id, _zone_overlay(celsius, duration))
        elif mode == "auto":
            action = f"set *{zone_name}* to auto mode"
            self.tado_client.delete_zone_overlay(home_id, self._zone_id(zone_name))
        return channel, action

    def _zone_id(self, name: str) -> int:
        update = self.get_update()
        zone = update.get_zone(name) if update is not None else None
        if zone is None:
            raise LookupError(f'unknown zone: "{name}"')
        return zone.id

    def make_view(self, mode: str, update: Optional[Update]) -> dict[str, Any]:
        """Build the dialog; manual mode adds temperature and expiration inputs."""
        zones = [zone.name for zone in update.zones] if update is not None else []
        blocks = [
            _input_block("zone", "Zone:", {
                "type": "static_select",
                "action_id": "zone",
                "options": create_option_blocks(*zones),
            }),
            {
                **_input_block("mode", "Mode:", {
                    "type": "radio_buttons",
                    "action_id": "mode",
                    "options": create_option_blocks("auto", "manual"),
                }),
                "dispatch_action": True,
            },
        ]
        if mode == "manual":
            blocks.append(_input_block("temperature", "Temperature:", {
                "type": "number_input",
                "action_id": "temperature",
                "is_decimal_allowed": True,
            }))
            blocks.append({
                **_input_block("expiration", "Expiration:", {
                    "type": "timepicker",
                    "action_id": "expiration",
                }),
                "optional": True,
            })
        blocks.append(_channel_block())
        return _modal("Set Room", SET_ROOM_CALLBACK_ID, blocks)


class SetHomeShortcut(UpdateStore):
    """Dialog that sets the home to auto, home or away mode."""

    def __init__(self, tado_client: Any = None, logger: Optional[logging.Logger] = None) -> None:
        super().__init__()
        self.tado_client = tado_client
        self.logger = logger or logging.getLogger(__name__)

    def handle_shortcut(self, data: Mapping[str, Any], sender: Any) -> None:
        _open_view(self.logger, data, sender, self.make_view())

    def handle_action(self, data: Mapping[str, Any], sender: Any) -> None:
        """The home dialog has no interactive elements."""

    def handle_submission(self, data: Mapping[str, Any], sender: Any) -> None:
        _submit(self.logger, data, sender, self.set_home, "failed to set home: ")

    def set_home(self, data: Mapping[str, Any]) -> tuple[str, str]:
        """Apply the submitted dialog; return the reply channel and a description."""
        mode = _selected(data, "mode")
        channel = _channel(data)
        action = f"set home to {mode} mode"
        home_id = _home_id(self.get_update())
        if mode == "auto":
            self.tado_client.delete_presence_lock(home_id)
        elif mode == "home":
            self.tado_client.set_presence_lock(home_id, PRESENCE_HOME)
        elif mode == "away":
            self.tado_client.set_presence_lock(home_id, PRESENCE_AWAY)
        return channel, action

    def make_view(self) -> dict[str, Any]:
        blocks = [
            _input_block("mode", "Mode:", {
                "type": "radio_buttons",
                "action_id": "mode",
                "options": create_option_blocks("auto", "home", "away"),
            }),
            _channel_block(),
        ]
        return _modal("Set Home", SET_HOME_CALLBACK_ID, blocks)


def create_option_blocks(*args: str) -> list[dict[str, Any]]:
    """One selectable option per value, labelled with the value itself."""
    return [{"text": _plain(option), "value": option} for option in args]


def time_stamp_to_duration(target: str, now: datetime) -> timedelta:
    """Time from now until the next occurrence of the clock time 'HH:MM'."""
    match = _CLOCK.fullmatch(target)
    if match is None:
        raise ValueError(f'cannot parse "{target}" as "15:04"')
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f'"{target}": time out of range')
    when = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if when < now:
        when += timedelta(days=1)
    return when - now


def _round_to_minute(duration: timedelta) -> timedelta:
    minute = timedelta(minutes=1)
    remainder = duration % minute
    if remainder + remainder < minute:
        return duration - remainder
    return duration + minute - remainder


def _zone_overlay(celsius: float, duration: timedelta) -> dict[str, Any]:
    if duration > timedelta(0):
        termination: dict[str, Any] = {
            "type": TERMINATION_TIMER,
            "durationInSeconds": int(duration.total_seconds()),
        }
    else:
        termination = {"type": TERMINATION_MANUAL}
    return {
        "setting": {"type": "HEATING", "power": "ON", "temperature": {"celsius": celsius}},
        "termination": termination,
    }


def _home_id(update: Optional[Update]) -> int:
    if update is None or update.home_id is None:
        raise NoUpdatesError()
    return update.home_id


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, Mapping):
            return None
        data = data.get(key)
    return data


def _state(data: Mapping[str, Any], block: str) -> Mapping[str, Any]:
    return _dig(data, "view", "state", "values", block, block) or {}


def _selected(data: Mapping[str, Any], block: str) -> str:
    return (_state(data, block).get("selected_option") or {}).get("value") or ""


def _channel(data: Mapping[str, Any]) -> str:
    return _state(data, "channel").get("selected_conversation") or ""


def _plain(text: str) -> dict[str, Any]:
    return {"type": "plain_text", "text": text}


def _input_block(block_id: str, label: str, element: dict[str, Any]) -> dict[str, Any]:
    return {"type": "input", "block_id": block_id, "label": _plain(label), "element": element}


def _channel_block() -> dict[str, Any]:
    return _input_block("channel", "Channel:", {
        "type": "conversations_select",
        "action_id": "channel",
        "default_to_current_conversation": True,
    })


def _modal(title: str, callback_id: str, blocks: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "type": "modal",
        "title": _plain(title),
        "blocks": blocks,
        "close": _plain("Close"),
        "submit": _plain("Submit"),
        "callback_id": callback_id,
        "clear_on_close": False,
        "notify_on_close": False,
    }


def _open_view(logger: logging.Logger, data: Mapping[str, Any], sender: Any, view: dict) -> None:
    try:
        response = sender.open_view(data.get("trigger_id", ""), view)
    except Exception as err:
        raise RuntimeError(
            f'failed to open view for "{data.get("callback_id", "")}": {err}'
        ) from err
    logger.debug("opened view: %s", response)


def _submit(
    logger: logging.Logger,
    data: Mapping[str, Any],
    sender: Any,
    apply: Callable[[Mapping[str, Any]], tuple[str, str]],
    failure_prefix: str,
) -> None:
    user = _dig(data, "user", "id") or ""
    channel = _channel(data)
    try:
        channel, action = apply(data)
    except Exception as err:
        _post(logger, lambda: sender.post_ephemeral(channel, user, {"text": failure_prefix + str(err)}))
        raise
    _post(logger, lambda: sender.post_message(channel, {"text": f"<@{user}> {action}"}))


def _post(logger: logging.Logger, send: Callable[[], Any]) -> None:
    try:
        send()
    except Exception as err:
        logger.warning("failed to post message: %s", err)