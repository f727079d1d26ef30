from __future__ import annotations

import asyncio
import json
from collections import deque
from collections.abc import Callable
from typing import Any

import pytest

from fschat.errors import TransportError

START_TIME = 1_700_000_000.0


class FakeTimer:
    def __init__(self, when: float, delay: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock: timers only fire when the test advances time."""

    def __init__(self, start: float = START_TIME) -> None:
        self.clock = start
        self.timers: list[FakeTimer] = []

    def now(self) -> float:
        return self.clock

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.clock + delay, delay, callback)
        self.timers.append(timer)
        return timer

    def active(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        target = self.clock + seconds
        while True:
            due = sorted((t for t in self.active() if t.when <= target), key=lambda t: t.when)
            if not due:
                break
            timer = due[0]
            self.clock = timer.when
            timer.fired = True
            timer.callback()
        self.clock = target


class FakeConnection:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.fail_send = False
        self._inbound: asyncio.Queue[str | None] = asyncio.Queue()

    async def send(self, frame: str) -> None:
        if self.fail_send:
            raise TransportError("send failed")
        self.sent.append(json.loads(frame))

    async def receive(self) -> str | None:
        return await self._inbound.get()

    async def close(self) -> None:
        self.closed = True
        self._inbound.put_nowait(None)

    def push(self, frame: str | dict[str, Any]) -> None:
        self._inbound.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def drop(self) -> None:
        self._inbound.put_nowait(None)


class FakeEventSource:
    """Opens FakeConnections; queued exceptions make the next opens fail."""

    def __init__(self) -> None:
        self.outcomes: deque[BaseException | FakeConnection] = deque()
        self.opened: list[FakeConnection] = []
        self.attempts = 0

    def refuse(self, times: int = 1) -> None:
        for _ in range(times):
            self.outcomes.append(TransportError("connection refused"))

    async def open(self) -> FakeConnection:
        self.attempts += 1
        outcome = self.outcomes.popleft() if self.outcomes else FakeConnection()
        if isinstance(outcome, BaseException):
            raise outcome
        self.opened.append(outcome)
        return outcome

    @property
    def last(self) -> FakeConnection:
        return self.opened[-1]


async def _settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def source() -> FakeEventSource:
    return FakeEventSource()


@pytest.fixture
def settle() -> Callable[..., Any]:
    """Let pending event-loop callbacks and tasks run."""
    return _settle
