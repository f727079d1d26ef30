"""Process-wide chat client context."""

from __future__ import annotations

import itertools
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from blinker import Signal
from loguru import logger

from fschat import protocol
from fschat.commands import CommandExtractor
from fschat.config import Settings
from fschat.connection import ConnectionManager
from fschat.errors import PayloadParseError, RetryExhaustedError
from fschat.models import ConnectionPhase, Message, Role
from fschat.protocol import MessageStateUpdate, MessageUpdate
from fschat.store import MessageStore
from fschat.timers import LoopScheduler, Scheduler
from fschat.tracker import ProcessingStateTracker
from fschat.transport import EventSource, WebSocketSource, resolve_ws_url
from fschat.view import MessageView, build_views


@dataclass(frozen=True)
class Snapshot:
    """A consistent picture of the session handed to renderers."""

    messages: list[Message]
    pending: bool
    phase: ConnectionPhase
    exhausted: bool = False
    selected_id: str | None = None
    views: list[MessageView] = field(default_factory=list)


RenderCallback = Callable[[Snapshot], None]


class ChatClient:
    """Owns the message store, processing tracker and connection of one session.

    All mutation goes through this object; `close()` tears everything down.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        source: EventSource | None = None,
        scheduler: Scheduler | None = None,
        extractor: CommandExtractor | None = None,
        on_render: RenderCallback | None = None,
    ) -> None:
        self.settings = settings
        self.scheduler = scheduler or LoopScheduler()
        self.extractor = extractor or CommandExtractor()
        self.store = MessageStore(temp_prefix=settings.temp_id_prefix)
        self.tracker = ProcessingStateTracker(
            self.scheduler,
            self._send_retry,
            max_retries=settings.max_message_retries,
        )
        if source is None:
            source = WebSocketSource(resolve_ws_url(settings.websocket_url, settings.base_url))
        self.connection = ConnectionManager(
            source,
            self.scheduler,
            self.dispatch,
            max_retries=settings.max_reconnect_attempts,
            base_delay=settings.reconnect_base_delay,
            delay_cap=settings.reconnect_delay_cap,
            queue_while_offline=settings.queue_while_offline,
        )
        self.rendered = Signal("fschat.client.rendered")
        self.selected_id: str | None = None
        self._on_render = on_render
        self._temp_seq = itertools.count(1)
        self.connection.phase_changed.connect(self._on_phase_changed, sender=self.connection, weak=False)

    def start(self) -> None:
        self.connection.connect()

    def resume(self) -> bool:
        """Reconnect after the session regains focus."""
        return self.connection.resume()

    async def close(self) -> None:
        self.tracker.close()
        await self.connection.close()
        self.connection.phase_changed.disconnect(self._on_phase_changed, sender=self.connection)

    def send_message(self, text: str) -> Message | None:
        """Show `text` immediately as an optimistic echo and send it."""
        text = text.strip()
        if not text:
            return None
        parent = self.selected_id if self.selected_id in self.store else None
        echo = Message(id=self._temp_id(), role=Role.USER, content=text, parent=parent)
        self.store.upsert(echo)
        result = self.extractor.extract(text)
        self.render(pending=True)
        self.connection.send(protocol.send_message(text, result.commands))
        logger.info("client.send message_id={} commands={}", echo.id, len(result.commands))
        return echo

    def select(self, message_id: str | None) -> str | None:
        """Select a message as parent of the next one; selecting it again clears it."""
        if message_id is None or message_id == self.selected_id:
            self.selected_id = None
        elif message_id in self.store:
            self.selected_id = message_id
        else:
            logger.debug("client.select.unknown message_id={}", message_id)
        self.render()
        return self.selected_id

    def retry(self, message_id: str) -> bool:
        """Manually retry a failed message. Returns whether a request was sent."""
        message = self.store.get(message_id)
        if message is None or not self.tracker.has_failed(message_id):
            logger.debug("client.retry.ignored message_id={}", message_id)
            return False
        try:
            return self.tracker.request_retry(message_id, message.retries)
        except RetryExhaustedError as exc:
            logger.warning("client.retry.exhausted message_id={} retries={}", exc.message_id, exc.retries)
            return False

    def dispatch(self, payload: dict[str, Any]) -> None:
        """Apply one decoded server frame."""
        try:
            event = protocol.parse_event(payload)
        except PayloadParseError as exc:
            logger.warning("client.dispatch.discarded error={}", exc)
            return
        if event is None:
            logger.debug("client.dispatch.ignored type={}", payload.get("type"))
            return

        if isinstance(event, MessageUpdate):
            if event.messages is not None:
                self._apply_snapshot(event.messages)
            elif event.message is not None:
                self._apply_message(event.message)
        elif isinstance(event, MessageStateUpdate):
            if not self._apply_message(event.message):
                return
            self.tracker.update(
                event.message.id,
                event.status,
                event.last_error,
                event.next_retry,
                retries=event.message.retries,
            )
        self.render()

    def snapshot(self, *, pending: bool | None = None) -> Snapshot:
        messages = self.store.order()
        return Snapshot(
            messages=messages,
            pending=self.store.has_temporary() if pending is None else pending,
            phase=self.connection.phase,
            exhausted=self.connection.exhausted,
            selected_id=self.selected_id,
            views=build_views(messages, self.tracker, now=self.scheduler.now()),
        )

    def render(self, *, pending: bool | None = None) -> Snapshot:
        snapshot = self.snapshot(pending=pending)
        if self._on_render is not None:
            try:
                self._on_render(snapshot)
            except Exception:
                logger.exception("client.render.error")
        self.rendered.send(self, snapshot=snapshot)
        return snapshot

    def _apply_message(self, message: Message) -> bool:
        if self.store.is_temporary(message.id):
            logger.warning("client.message.rejected message_id={} reason=temporary id from server", message.id)
            return False
        self.store.upsert(message)
        return True

    def _apply_snapshot(self, messages: list[Message]) -> None:
        accepted = [message for message in messages if not self.store.is_temporary(message.id)]
        if len(accepted) != len(messages):
            logger.warning("client.snapshot.rejected count={} reason=temporary id from server", len(messages) - len(accepted))
        self.store.apply_snapshot(accepted)
        self.tracker.retain(message.id for message in self.store)
        if self.selected_id is not None and self.selected_id not in self.store:
            self.selected_id = None
        logger.info("client.snapshot messages={}", len(accepted))

    def _send_retry(self, message_id: str) -> bool:
        return self.connection.send(protocol.retry_message(message_id))

    def _temp_id(self) -> str:
        millis = int(self.scheduler.now() * 1000)
        return f"{self.settings.temp_id_prefix}{millis}-{next(self._temp_seq)}"

    def _on_phase_changed(self, sender: ConnectionManager, *, phase: ConnectionPhase) -> None:
        self.render()
