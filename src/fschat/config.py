"""Configuration management for fschat."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="FSCHAT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Connection
    websocket_url: str = Field(default="ws://localhost:8080/", description="Absolute ws URL or path relative to base_url")
    base_url: str = Field(default="http://localhost:8080", description="HTTP origin of the chat server")
    max_reconnect_attempts: int = Field(default=5, ge=0, description="Automatic reconnects before giving up")
    reconnect_base_delay: float = Field(default=1.0, gt=0, description="Backoff unit in seconds")
    reconnect_delay_cap: int = Field(default=30, ge=1, description="Upper bound of the backoff multiplier")
    queue_while_offline: bool = Field(default=True, description="Queue payloads while disconnected instead of dropping")

    # Messages
    max_message_retries: int = Field(default=3, ge=0, description="Retry ceiling per message")
    temp_id_prefix: str = Field(default="temp-", min_length=1, description="Reserved prefix of optimistic message ids")

    # Recent chats
    recent_chats_path: Path = Field(default=Path.home() / ".fschat" / "recent.json")
    max_recent_chats: int = Field(default=5, ge=1)

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_profile: Literal["default", "chat"] = Field(default="default", description="Log sink profile")


def get_settings(**overrides: Any) -> Settings:
    """Build settings from the environment, `.env` and explicit overrides."""
    return Settings(**overrides)
