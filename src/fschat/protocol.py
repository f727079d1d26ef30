"""JSON wire frames exchanged with the chat server."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from fschat.errors import PayloadParseError
from fschat.models import Command, Message, ProcessingStatus

GET_MESSAGES = "get_messages"
SEND_MESSAGE = "send_message"
RETRY_MESSAGE = "retry_message"
MESSAGE_UPDATE = "message_update"
MESSAGE_STATE_UPDATE = "message_state_update"


def exclude_none(d: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


def get_messages() -> dict[str, Any]:
    return {"type": GET_MESSAGES}


def send_message(content: str, fs_commands: list[Command] | None = None) -> dict[str, Any]:
    commands = [command.model_dump(exclude_none=True) for command in fs_commands or ()]
    return exclude_none({"type": SEND_MESSAGE, "content": content, "fs_commands": commands or None})


def retry_message(message_id: str) -> dict[str, Any]:
    return {"type": RETRY_MESSAGE, "messageId": message_id}


def encode(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False)


def decode(raw: str | bytes) -> dict[str, Any]:
    """Parse one inbound frame into a JSON object."""
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise PayloadParseError(f"frame is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise PayloadParseError(f"frame is a JSON {type(payload).__name__}, expected an object")
    return payload


class _MessageStateBody(BaseModel):
    message: Message
    status: ProcessingStatus
    last_error: str | None = None
    next_retry: float | None = None


@dataclass(frozen=True)
class MessageUpdate:
    """Single (`message`) or bulk (`messages`) authoritative push."""

    message: Message | None = None
    messages: list[Message] | None = None

    @property
    def is_snapshot(self) -> bool:
        return self.messages is not None


@dataclass(frozen=True)
class MessageStateUpdate:
    message: Message
    status: ProcessingStatus
    last_error: str | None = None
    next_retry: float | None = None


type InboundEvent = MessageUpdate | MessageStateUpdate


def parse_event(payload: dict[str, Any]) -> InboundEvent | None:
    """Turn a decoded frame into a typed event.

    Returns None for frame kinds the client does not handle.

    Raises:
        PayloadParseError: the frame kind is known but its body is malformed.
    """
    kind = payload.get("type")
    try:
        if kind == MESSAGE_UPDATE:
            if payload.get("messages") is not None:
                raw_messages = payload["messages"]
                if not isinstance(raw_messages, list):
                    raise PayloadParseError("message_update.messages must be a list")
                return MessageUpdate(messages=[Message.model_validate(item) for item in raw_messages])
            if payload.get("message") is not None:
                return MessageUpdate(message=Message.model_validate(payload["message"]))
            raise PayloadParseError("message_update carries neither message nor messages")
        if kind == MESSAGE_STATE_UPDATE:
            body = _MessageStateBody.model_validate(payload.get("message_state"))
            return MessageStateUpdate(
                message=body.message,
                status=body.status,
                last_error=body.last_error,
                next_retry=body.next_retry,
            )
    except ValidationError as exc:
        raise PayloadParseError(f"malformed {kind} frame: {exc.error_count()} error(s)") from exc
    return None
