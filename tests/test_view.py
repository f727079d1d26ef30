from fschat.models import Message, ProcessingStatus, Role
from fschat.tracker import ProcessingStateTracker
from fschat.view import build_views, format_retry_time, head_label


def test_format_retry_time() -> None:
    assert format_retry_time(1030, 1000) == "30 seconds"
    assert format_retry_time(1000 + 150, 1000) == "2 minutes"
    assert format_retry_time(900, 1000) == "0 seconds"


def test_head_label() -> None:
    assert head_label([]) == "Head: None"
    assert head_label([Message(id="0123456789abcdef", role=Role.USER)]) == "Head: 01234567..."


def test_build_views_without_state_are_plain(scheduler) -> None:
    tracker = ProcessingStateTracker(scheduler, lambda _mid: None)
    (view,) = build_views([Message(id="m1", role=Role.USER)], tracker, now=scheduler.now())

    assert not (view.is_processing or view.has_failed or view.can_retry)
    assert view.error is None and view.retry_in is None


def test_build_views_reflect_tracker(scheduler) -> None:
    tracker = ProcessingStateTracker(scheduler, lambda _mid: None)
    tracker.update("busy", ProcessingStatus.GENERATING_RESPONSE)
    tracker.update("failed", ProcessingStatus.FAILED, "boom", retries=2)
    messages = [
        Message(id="busy", role=Role.ASSISTANT),
        Message(id="failed", role=Role.USER, retries=2),
    ]

    busy, failed = build_views(messages, tracker, now=scheduler.now())

    assert busy.is_processing
    assert failed.has_failed and failed.can_retry and failed.error == "boom"
