"""Data model shared by the synchronization core."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ProcessingStatus(StrEnum):
    """Server-reported lifecycle of a message's asynchronous handling."""

    QUEUED = "Queued"
    PROCESSING_COMMANDS = "ProcessingCommands"
    GENERATING_RESPONSE = "GeneratingResponse"
    COMPLETED = "Completed"
    FAILED = "Failed"
    RETRY_SCHEDULED = "RetryScheduled"


class ConnectionPhase(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class Command(BaseModel):
    """One filesystem instruction embedded in message text."""

    model_config = ConfigDict(frozen=True)

    operation: str
    path: str
    content: str | None = None

    def summary(self) -> str:
        text = f"{self.operation} {self.path}"
        if self.content:
            text += " (with content)"
        return text


class CommandResult(BaseModel):
    """Outcome of one command, in the order the commands were issued."""

    model_config = ConfigDict(frozen=True)

    operation: str
    path: str
    success: bool
    data: str | None = None
    error: str | None = None


class Message(BaseModel):
    """A chat message as cached on the client.

    Unknown wire fields are kept so a message can be re-rendered with whatever the
    server attached to it.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    role: Role
    content: str = ""
    parent: str | None = None
    fs_commands: list[Command] | None = None
    fs_results: list[CommandResult] | None = None
    retries: int = Field(default=0, ge=0)

    def merged_with(self, incoming: Message) -> Message:
        """Return this message updated with the fields `incoming` explicitly carries."""
        update = {name: getattr(incoming, name) for name in incoming.model_fields_set}
        update.update(incoming.model_extra or {})
        return self.model_copy(update=update)


@dataclass
class ProcessingState:
    """Transient processing status of one message."""

    message_id: str
    status: ProcessingStatus
    last_error: str | None = None
    next_retry_at: float | None = None
    retries: int = 0
