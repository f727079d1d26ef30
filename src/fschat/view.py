"""Render-facing view of messages and their processing state."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from fschat.models import Message
from fschat.tracker import ProcessingStateTracker

DEFAULT_ERROR_TEXT = "An error occurred"


@dataclass(frozen=True)
class MessageView:
    message: Message
    is_processing: bool = False
    has_failed: bool = False
    can_retry: bool = False
    error: str | None = None
    retry_in: str | None = None

    @property
    def id(self) -> str:
        return self.message.id


def format_retry_time(next_retry_at: float, now: float) -> str:
    seconds = max(int(next_retry_at - now), 0)
    if seconds < 60:
        return f"{seconds} seconds"
    return f"{seconds // 60} minutes"


def head_label(messages: list[Message]) -> str:
    if not messages:
        return "Head: None"
    return f"Head: {messages[-1].id[:8]}..."


def build_views(messages: Iterable[Message], tracker: ProcessingStateTracker, *, now: float) -> list[MessageView]:
    views: list[MessageView] = []
    for message in messages:
        state = tracker.get(message.id)
        if state is None:
            views.append(MessageView(message))
            continue
        failed = tracker.has_failed(message.id)
        retry_in = None
        if state.next_retry_at is not None and tracker.has_pending_retry(message.id):
            retry_in = format_retry_time(state.next_retry_at, now)
        views.append(
            MessageView(
                message,
                is_processing=tracker.is_processing(message.id),
                has_failed=failed,
                can_retry=tracker.can_retry(message.id, message.retries),
                error=(state.last_error or DEFAULT_ERROR_TEXT) if failed else None,
                retry_in=retry_in,
            )
        )
    return views
