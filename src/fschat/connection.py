"""Connection lifecycle: backoff reconnects and the outbound queue."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any

from blinker import Signal
from loguru import logger

from fschat import protocol
from fschat.errors import PayloadParseError, TransportError
from fschat.logging_utils import set_phase
from fschat.models import ConnectionPhase
from fschat.timers import Scheduler, TimerRegistry
from fschat.transport import Connection, EventSource

DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY = 1.0
DEFAULT_DELAY_CAP = 30

# Timer key of the manager's own reconnect timer.
RECONNECT = "reconnect"

PayloadHandler = Callable[[dict[str, Any]], None]


def backoff_delay(retry_count: int, base_delay: float = DEFAULT_BASE_DELAY, cap: int = DEFAULT_DELAY_CAP) -> float:
    """Linear backoff: one `base_delay` per attempt, never more than `cap` units."""
    return base_delay * min(max(retry_count, 0), cap)


@dataclass
class ConnectionState:
    phase: ConnectionPhase = ConnectionPhase.DISCONNECTED
    retry_count: int = 0
    outbound: deque[dict[str, Any]] = field(default_factory=deque)


class ConnectionManager:
    """Own the duplex connection and keep it alive.

    Payloads sent while offline wait in a FIFO queue and go out, in order, on
    the next successful open, followed by a full `get_messages` resync.
    Connection failures never escape: they end in a phase change plus either
    a scheduled reconnect or, once `max_retries` is spent, a stop until
    `resume()` is called.
    """

    def __init__(
        self,
        source: EventSource,
        scheduler: Scheduler,
        on_payload: PayloadHandler,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        delay_cap: int = DEFAULT_DELAY_CAP,
        queue_while_offline: bool = True,
    ) -> None:
        self._source = source
        self._on_payload = on_payload
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.delay_cap = delay_cap
        self.queue_while_offline = queue_while_offline
        self.state = ConnectionState()
        self.phase_changed = Signal("fschat.connection.phase")
        self._timers = TimerRegistry(scheduler)
        self._wakeup = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def phase(self) -> ConnectionPhase:
        return self.state.phase

    @property
    def retry_count(self) -> int:
        return self.state.retry_count

    @property
    def pending(self) -> int:
        return len(self.state.outbound)

    @property
    def reconnect_scheduled(self) -> bool:
        return self._timers.is_armed(RECONNECT)

    @property
    def exhausted(self) -> bool:
        """Disconnected with no automatic reconnect left."""
        return (
            self.state.phase is ConnectionPhase.DISCONNECTED
            and not self.reconnect_scheduled
            and self.state.retry_count >= self.max_retries
        )

    def connect(self) -> None:
        """Start opening a connection unless one is already open or opening."""
        if self._closed:
            logger.debug("connection.connect.ignored reason=closed")
            return
        if self.state.phase is not ConnectionPhase.DISCONNECTED:
            return
        self._timers.cancel(RECONNECT)
        self._set_phase(ConnectionPhase.CONNECTING)
        self._task = asyncio.get_running_loop().create_task(self._run())

    def resume(self) -> bool:
        """Reconnect now, e.g. when the user comes back to the session.

        Restores the full retry budget, so this also recovers from exhausted
        backoff.
        """
        if self._closed or self.state.phase is not ConnectionPhase.DISCONNECTED:
            return False
        logger.info("connection.resume retry_count={}", self.state.retry_count)
        self.state.retry_count = 0
        self.connect()
        return True

    def send(self, payload: dict[str, Any]) -> bool:
        """Transmit `payload`, queueing it while offline.

        Returns False when the payload was dropped.
        """
        kind = payload.get("type")
        if self._closed:
            logger.warning("connection.send.dropped type={} reason=closed", kind)
            return False
        connected = self.state.phase is ConnectionPhase.CONNECTED
        if not connected and not self.queue_while_offline:
            logger.warning("connection.send.dropped type={} phase={}", kind, self.state.phase)
            return False
        self.state.outbound.append(payload)
        self._wakeup.set()
        if not connected:
            logger.info("connection.send.queued type={} pending={}", kind, len(self.state.outbound))
        return True

    async def close(self) -> None:
        """Tear down: close the connection, cancel timers, discard the queue."""
        self._closed = True
        self._timers.cancel_all()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        dropped = len(self.state.outbound)
        self.state.outbound.clear()
        self._set_phase(ConnectionPhase.DISCONNECTED)
        logger.info("connection.closed dropped={}", dropped)

    async def _run(self) -> None:
        try:
            conn = await self._source.open()
        except Exception as exc:
            logger.warning("connection.open.failed error={}", exc)
            self._handle_close()
            return

        self._handle_open()
        writer = asyncio.create_task(self._write_loop(conn))
        try:
            await self._read_loop(conn)
        except Exception as exc:
            logger.warning("connection.receive.failed error={}", exc)
        finally:
            writer.cancel()
            with suppress(asyncio.CancelledError):
                await writer
            await self._close_quietly(conn)
        self._handle_close()

    def _handle_open(self) -> None:
        self.state.retry_count = 0
        self._set_phase(ConnectionPhase.CONNECTED)
        outbound = self.state.outbound
        if outbound:
            logger.info("connection.flush pending={}", len(outbound))
        if not any(payload.get("type") == protocol.GET_MESSAGES for payload in outbound):
            outbound.append(protocol.get_messages())
        self._wakeup.set()

    def _handle_close(self) -> None:
        self._set_phase(ConnectionPhase.DISCONNECTED)
        if self._closed:
            return
        if self.state.retry_count >= self.max_retries:
            logger.warning("connection.reconnect.exhausted attempts={}", self.state.retry_count)
            return
        self.state.retry_count += 1
        delay = backoff_delay(self.state.retry_count, self.base_delay, self.delay_cap)
        self._timers.arm(RECONNECT, delay, self.connect)
        logger.info("connection.reconnect.scheduled attempt={} delay={:.1f}s", self.state.retry_count, delay)

    async def _read_loop(self, conn: Connection) -> None:
        while True:
            raw = await conn.receive()
            if raw is None:
                return
            self._handle_frame(raw)

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            payload = protocol.decode(raw)
        except PayloadParseError as exc:
            logger.warning("connection.frame.discarded error={}", exc)
            return
        try:
            self._on_payload(payload)
        except Exception:
            logger.exception("connection.dispatch.error type={}", payload.get("type"))

    async def _write_loop(self, conn: Connection) -> None:
        outbound = self.state.outbound
        while True:
            while outbound:
                payload = outbound[0]
                try:
                    frame = protocol.encode(payload)
                except (TypeError, ValueError) as exc:
                    logger.error("connection.send.unencodable type={} error={}", payload.get("type"), exc)
                    outbound.popleft()
                    continue
                try:
                    await conn.send(frame)
                except TransportError as exc:
                    # The payload stays at the head of the queue for the next connection.
                    logger.warning("connection.send.failed type={} error={}", payload.get("type"), exc)
                    await self._close_quietly(conn)
                    return
                outbound.popleft()
            self._wakeup.clear()
            await self._wakeup.wait()

    async def _close_quietly(self, conn: Connection) -> None:
        try:
            await conn.close()
        except Exception as exc:
            logger.debug("connection.close.error error={}", exc)

    def _set_phase(self, phase: ConnectionPhase) -> None:
        if self.state.phase is phase:
            return
        self.state.phase = phase
        set_phase(phase)
        logger.info("connection.phase phase={} retry_count={}", phase, self.state.retry_count)
        self.phase_changed.send(self, phase=phase)
