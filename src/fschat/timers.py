"""Timer scheduling shared by reconnect backoff and message retries."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Hashable
from typing import Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Wall clock plus delayed callbacks on the event loop."""

    def now(self) -> float:
        """Current wall-clock time in epoch seconds."""
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopScheduler:
    """Scheduler backed by the running asyncio loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(delay, 0.0), callback)


class TimerRegistry:
    """At most one armed timer per key; arming a key replaces its previous timer."""

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._timers: dict[Hashable, TimerHandle] = {}

    def arm(self, key: Hashable, delay: float, callback: Callable[[], None]) -> None:
        self.cancel(key)

        def _fire() -> None:
            self._timers.pop(key, None)
            callback()

        self._timers[key] = self._scheduler.call_later(max(delay, 0.0), _fire)

    def cancel(self, key: Hashable) -> bool:
        handle = self._timers.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def is_armed(self, key: Hashable) -> bool:
        return key in self._timers

    def __len__(self) -> int:
        return len(self._timers)
