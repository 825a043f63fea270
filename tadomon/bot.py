"""Chat bot that answers slash commands and shortcuts about a home."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping, Optional

from tadomon.commands import CommandRunner
from tadomon.shortcuts import (
    INTERACTION_BLOCK_ACTIONS,
    INTERACTION_SHORTCUT,
    INTERACTION_VIEW_SUBMISSION,
    SET_HOME_CALLBACK_ID,
    SET_ROOM_CALLBACK_ID,
    SetHomeShortcut,
    SetRoomShortcut,
    Shortcuts,
)
from tadomon.state import Update

EventHandler = Callable[[Mapping[str, Any], Any], None]
SLASH_COMMAND = "/tado"


class Bot:
    """Wires commands and shortcuts to a socket-mode event handler.

    The handler must offer ``handle_slash_command(command, f)``,
    ``handle_interaction(kind, f)``, ``handle_default(f)`` and a coroutine
    ``run_event_loop()``.  The poller's ``subscribe()`` returns an
    ``asyncio.Queue`` of updates, released again with ``unsubscribe(queue)``.
    """

    def __init__(
        self,
        tado_client: Any,
        handler: Any,
        poller: Any,
        controller: Any = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.handler = handler
        self.poller = poller
        self.commands = CommandRunner(
            tado_client=tado_client, poller=poller, controller=controller, logger=self.logger
        )
        self.shortcuts = Shortcuts(
            {
                SET_ROOM_CALLBACK_ID: SetRoomShortcut(
                    tado_client, logger=self.logger.getChild("setRoom")
                ),
                SET_HOME_CALLBACK_ID: SetHomeShortcut(
                    tado_client, logger=self.logger.getChild("setHome")
                ),
            }
        )

        handler.handle_slash_command(SLASH_COMMAND, self.run_command(self.commands.dispatch))
        for kind in (INTERACTION_SHORTCUT, INTERACTION_BLOCK_ACTIONS, INTERACTION_VIEW_SUBMISSION):
            handler.handle_interaction(kind, self.run_shortcut(self.shortcuts.dispatch))
        handler.handle_default(self._unhandled)

    def _unhandled(self, event: Mapping[str, Any], client: Any) -> None:
        self.logger.debug(
            "unhandled event received type=%s data=%s",
            event.get("type"),
            type(event.get("data")).__name__,
        )

    async def run(self) -> None:
        """Run the event loop and track poller updates until cancelled."""
        self.logger.debug("bot started")
        updates = self.poller.subscribe()
        event_loop: Optional[asyncio.Future] = asyncio.ensure_future(
            self.handler.run_event_loop()
        )
        loop_task = event_loop
        next_update: Optional[asyncio.Future] = None
        try:
            while True:
                if next_update is None:
                    next_update = asyncio.ensure_future(updates.get())
                waiting = {next_update}
                if event_loop is not None:
                    waiting.add(event_loop)
                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
                if event_loop is not None and event_loop in done:
                    if not event_loop.cancelled() and event_loop.exception() is not None:
                        err = event_loop.exception()
                        raise RuntimeError(f"bot: {err}") from err
                    event_loop = None
                if next_update in done:
                    self._set_update(next_update.result())
                    next_update = None
        finally:
            if next_update is not None:
                next_update.cancel()
            loop_task.cancel()
            self.poller.unsubscribe(updates)
            self.logger.debug("bot stopped")

    def _set_update(self, update: Update) -> None:
        self.commands.set_update(update)
        self.shortcuts.set_update(update)

    def get_update(self) -> Optional[Update]:
        """The latest update received from the poller, or None."""
        return self.commands.get_update()

    def run_command(self, command: Callable[[Mapping[str, Any], Any], None]) -> EventHandler:
        """Wrap a slash command: acknowledge it, report failures to the caller."""

        def handle(event: Mapping[str, Any], client: Any) -> None:
            client.ack(event.get("request"))
            data = event.get("data") or {}
            try:
                command(data, client)
            except Exception as err:
                try:
                    client.post_ephemeral(
                        data.get("channel_id", ""),
                        data.get("user_id", ""),
                        {"text": f"command failed: {err}"},
                    )
                except Exception as post_err:
                    self.logger.warning(
                        "failed to post command output cmd=%s err=%s",
                        data.get("command"), post_err,
                    )

        return handle

    def run_shortcut(self, shortcut: Callable[[Mapping[str, Any], Any], None]) -> EventHandler:
        """Wrap a shortcut: acknowledge it only when it succeeded."""

        def handle(event: Mapping[str, Any], client: Any) -> None:
            data = event.get("data") or {}
            try:
                shortcut(data, client)
            except Exception as err:
                self.logger.warning("shortcut failed err=%s type=%s", err, data.get("type"))
                return
            client.ack(event.get("request"))

        return handle