import pytest

from fschat import protocol
from fschat.errors import PayloadParseError
from fschat.models import Command, ProcessingStatus


def test_send_message_omits_empty_and_absent_fields() -> None:
    assert protocol.send_message("hi", []) == {"type": "send_message", "content": "hi"}

    frame = protocol.send_message("x", [Command(operation="read", path="/a")])

    assert frame["fs_commands"] == [{"operation": "read", "path": "/a"}]


def test_retry_message_frame() -> None:
    assert protocol.retry_message("m1") == {"type": "retry_message", "messageId": "m1"}


@pytest.mark.parametrize("raw", ["{oops", "[1]", "3", b"\xff"])
def test_decode_rejects_non_objects(raw) -> None:
    with pytest.raises(PayloadParseError):
        protocol.decode(raw)


def test_parse_single_and_bulk_updates() -> None:
    single = protocol.parse_event({"type": "message_update", "message": {"id": "m1", "role": "user", "content": "hi"}})
    bulk = protocol.parse_event({"type": "message_update", "messages": [{"id": "m1", "role": "assistant"}]})

    assert not single.is_snapshot and single.message.id == "m1"
    assert bulk.is_snapshot and [m.id for m in bulk.messages] == ["m1"]


def test_parse_state_update() -> None:
    event = protocol.parse_event(
        {
            "type": "message_state_update",
            "message_state": {
                "message": {"id": "m1", "role": "user", "content": "x", "retries": 2},
                "status": "RetryScheduled",
                "last_error": "timeout",
                "next_retry": 1700000010,
            },
        }
    )

    assert event.status is ProcessingStatus.RETRY_SCHEDULED
    assert event.message.retries == 2
    assert event.next_retry == 1700000010


def test_unknown_kind_is_ignored() -> None:
    assert protocol.parse_event({"type": "typing"}) is None


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "message_update"},
        {"type": "message_update", "messages": "nope"},
        {"type": "message_update", "message": {"id": "m1", "role": "robot"}},
        {"type": "message_state_update", "message_state": {"message": {"id": "m1", "role": "user"}, "status": "Lost"}},
        {"type": "message_state_update"},
    ],
)
def test_malformed_known_frames_raise(payload) -> None:
    with pytest.raises(PayloadParseError):
        protocol.parse_event(payload)
