"""Per-message processing state and retry scheduling."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from loguru import logger

from fschat.errors import RetryExhaustedError
from fschat.models import ProcessingState, ProcessingStatus
from fschat.timers import Scheduler, TimerRegistry

DEFAULT_MAX_RETRIES = 3
RETRY_LIMIT_ERROR = "retry limit reached"
RETRY_NOT_SENT_ERROR = "retry request could not be sent"

_BUSY = frozenset({ProcessingStatus.PROCESSING_COMMANDS, ProcessingStatus.GENERATING_RESPONSE})


class ProcessingStateTracker:
    """Track the server-reported status of each message and drive retries.

    `on_retry` is called with a message id whenever a retry request should be
    sent, either because a scheduled retry came due or on a manual retry. It
    returns whether the request was actually handed to the connection.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        on_retry: Callable[[str], bool],
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        self._scheduler = scheduler
        self._on_retry = on_retry
        self.max_retries = max_retries
        self._states: dict[str, ProcessingState] = {}
        self._timers = TimerRegistry(scheduler)

    def update(
        self,
        message_id: str,
        status: ProcessingStatus | str,
        last_error: str | None = None,
        next_retry_at: float | None = None,
        *,
        retries: int = 0,
    ) -> ProcessingState:
        """Record the latest status for `message_id`, replacing what was there."""
        status = ProcessingStatus(status)
        state = ProcessingState(
            message_id=message_id,
            status=status,
            last_error=last_error,
            next_retry_at=next_retry_at,
            retries=retries,
        )
        self._states[message_id] = state

        if status is not ProcessingStatus.RETRY_SCHEDULED:
            if self._timers.cancel(message_id):
                logger.debug("tracker.retry.cancelled message_id={} status={}", message_id, status)
            return state
        if next_retry_at is None:
            return state
        if not self.retry_allowed(retries):
            self._timers.cancel(message_id)
            state.status = ProcessingStatus.FAILED
            state.last_error = last_error or RETRY_LIMIT_ERROR
            state.next_retry_at = None
            logger.warning("tracker.retry.exhausted message_id={} retries={}", message_id, retries)
            return state

        delay = max(next_retry_at - self._scheduler.now(), 0.0)
        self._timers.arm(message_id, delay, lambda: self._fire(message_id))
        logger.info("tracker.retry.scheduled message_id={} delay={:.1f}s", message_id, delay)
        return state

    def get(self, message_id: str) -> ProcessingState | None:
        return self._states.get(message_id)

    def is_processing(self, message_id: str) -> bool:
        state = self._states.get(message_id)
        return state is not None and state.status in _BUSY

    def has_failed(self, message_id: str) -> bool:
        state = self._states.get(message_id)
        return state is not None and state.status is ProcessingStatus.FAILED

    def retry_allowed(self, retries: int) -> bool:
        return retries < self.max_retries

    def can_retry(self, message_id: str, retries: int) -> bool:
        """Whether a manual retry should be offered for a failed message."""
        return self.has_failed(message_id) and self.retry_allowed(retries)

    def request_retry(self, message_id: str, retries: int) -> bool:
        """Ask for a manual retry now. Returns whether the request was sent.

        Raises:
            RetryExhaustedError: the message already used its retry budget.
        """
        if not self.retry_allowed(retries):
            raise RetryExhaustedError(message_id, retries)
        self._timers.cancel(message_id)
        return self._on_retry(message_id)

    def has_pending_retry(self, message_id: str) -> bool:
        return self._timers.is_armed(message_id)

    def pending_retries(self) -> int:
        return len(self._timers)

    def discard(self, message_id: str) -> None:
        self._timers.cancel(message_id)
        self._states.pop(message_id, None)

    def retain(self, message_ids: Iterable[str]) -> int:
        """Forget every message outside `message_ids`, cancelling its retry timer."""
        keep = set(message_ids)
        stale = [message_id for message_id in self._states if message_id not in keep]
        for message_id in stale:
            self.discard(message_id)
        if stale:
            logger.debug("tracker.retain dropped={}", len(stale))
        return len(stale)

    def close(self) -> None:
        """Cancel every pending retry timer."""
        self._timers.cancel_all()

    def _fire(self, message_id: str) -> None:
        logger.info("tracker.retry.fire message_id={}", message_id)
        try:
            sent = self._on_retry(message_id)
        except Exception:
            logger.exception("tracker.retry.error message_id={}", message_id)
            sent = False
        state = self._states.get(message_id)
        if state is None:
            return
        state.next_retry_at = None
        if sent:
            state.status = ProcessingStatus.QUEUED
            return
        state.status = ProcessingStatus.FAILED
        state.last_error = RETRY_NOT_SENT_ERROR
        logger.warning("tracker.retry.unsent message_id={}", message_id)
