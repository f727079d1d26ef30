"""Local message cache with merge and ordering rules."""

from __future__ import annotations

import heapq
from collections.abc import Iterable, Iterator

from loguru import logger

from fschat.models import Message

DEFAULT_TEMP_PREFIX = "temp-"


class MessageStore:
    """Authoritative local view of one chat session.

    Entries keep the position at which their id first arrived; that position
    breaks ties whenever the parent relation does not decide the order.
    """

    def __init__(self, temp_prefix: str = DEFAULT_TEMP_PREFIX) -> None:
        self.temp_prefix = temp_prefix
        self._messages: dict[str, Message] = {}
        self._arrival: dict[str, int] = {}
        self._pinned: set[str] = set()
        self._seq = 0

    def is_temporary(self, message_id: str) -> bool:
        return message_id.startswith(self.temp_prefix)

    def upsert(self, message: Message) -> Message:
        """Insert or merge one message.

        A temporary id is an optimistic echo and is only inserted. Any other id is
        an authoritative update: fields it carries overwrite the cached ones, fields
        it omits are kept, and every temporary entry is dropped afterwards.
        """
        existing = self._messages.get(message.id)
        merged = message if existing is None else existing.merged_with(message)
        self._put(merged)
        if not self.is_temporary(message.id):
            self.remove_temporary()
        return merged

    def pin(self, message: Message) -> None:
        """Add a locally owned entry that survives snapshots."""
        self._put(message)
        self._pinned.add(message.id)

    def apply_snapshot(self, messages: Iterable[Message]) -> None:
        """Replace every non-pinned entry with the given authoritative sequence."""
        for message_id in [mid for mid in self._messages if mid not in self._pinned]:
            self._drop(message_id)
        for message in messages:
            if message.id in self._pinned:
                self._messages[message.id] = self._messages[message.id].merged_with(message)
                continue
            self._put(message)
        self.remove_temporary()

    def remove_temporary(self) -> int:
        stale = [mid for mid in self._messages if self.is_temporary(mid) and mid not in self._pinned]
        for message_id in stale:
            self._drop(message_id)
        return len(stale)

    def has_temporary(self) -> bool:
        return any(self.is_temporary(mid) for mid in self._messages)

    def order(self) -> list[Message]:
        """Display order: parents before children, arrival order otherwise.

        Messages whose parent is unset or unknown are roots. Entries caught in a
        parent cycle are logged and released one at a time, earliest arrival first.
        """
        children: dict[str, list[str]] = {}
        ready: list[tuple[int, str]] = []
        for message_id, message in self._messages.items():
            parent = message.parent
            if parent is None or parent == message_id or parent not in self._messages:
                ready.append((self._arrival[message_id], message_id))
            else:
                children.setdefault(parent, []).append(message_id)
        heapq.heapify(ready)

        ordered: list[Message] = []
        emitted: set[str] = set()
        while len(ordered) < len(self._messages):
            if not ready:
                remaining = sorted(
                    (self._arrival[mid], mid) for mid in self._messages if mid not in emitted
                )
                logger.warning("store.order.cycle ids={}", [mid for _, mid in remaining])
                ready.append(remaining[0])
            _, message_id = heapq.heappop(ready)
            if message_id in emitted:
                continue
            emitted.add(message_id)
            ordered.append(self._messages[message_id])
            for child in children.get(message_id, ()):
                if child not in emitted:
                    heapq.heappush(ready, (self._arrival[child], child))
        return ordered

    def head(self) -> Message | None:
        ordered = self.order()
        return ordered[-1] if ordered else None

    def get(self, message_id: str) -> Message | None:
        return self._messages.get(message_id)

    def clear(self) -> None:
        self._messages.clear()
        self._arrival.clear()
        self._pinned.clear()

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._messages

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages.values())

    def _put(self, message: Message) -> None:
        if message.id not in self._arrival:
            self._arrival[message.id] = self._seq
            self._seq += 1
        self._messages[message.id] = message

    def _drop(self, message_id: str) -> None:
        self._messages.pop(message_id, None)
        self._arrival.pop(message_id, None)
