"""Application-level exception types for fschat."""

from __future__ import annotations


class FsChatError(Exception):
    """Base exception for fschat."""


class TransportError(FsChatError, ConnectionError):
    """Raised when the duplex connection cannot be opened or is lost."""


class PayloadParseError(FsChatError):
    """Raised when an inbound frame is not valid structured data."""


class CommandParseError(FsChatError):
    """Raised when an embedded command block cannot be parsed."""


class CommandValidationError(CommandParseError):
    """Raised when a command block is missing a required field."""


class RetryExhaustedError(FsChatError):
    """Raised when a message has used up its retry budget."""

    def __init__(self, message_id: str, retries: int) -> None:
        super().__init__(f"message {message_id} reached the retry limit ({retries})")
        self.message_id = message_id
        self.retries = retries
