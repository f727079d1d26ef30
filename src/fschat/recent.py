"""History of recently opened chat sessions."""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path

from loguru import logger

DEFAULT_MAX_RECENT_CHATS = 5


@dataclass(frozen=True)
class RecentChat:
    fs_path: str
    url: str
    permissions: list[str] = field(default_factory=list)
    timestamp: int = 0


class RecentChats:
    """JSON-file history, capped and kept most-recent-first."""

    def __init__(self, file_path: str | Path, limit: int = DEFAULT_MAX_RECENT_CHATS) -> None:
        self.file_path = Path(file_path)
        self.limit = limit

    def entries(self) -> list[RecentChat]:
        chats = self._load()
        return sorted(chats, key=lambda chat: chat.timestamp, reverse=True)

    def add(self, fs_path: str, url: str, permissions: list[str], *, timestamp: int | None = None) -> RecentChat:
        if timestamp is None:
            timestamp = int(time.time() * 1000)
        chat = RecentChat(fs_path=fs_path, url=url, permissions=list(permissions), timestamp=timestamp)
        chats = [chat, *self.entries()][: self.limit]
        self._save(chats)
        return chat

    def clear(self) -> None:
        if self.file_path.exists():
            self.file_path.unlink()

    def _load(self) -> list[RecentChat]:
        if not self.file_path.exists():
            return []
        try:
            with open(self.file_path, encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("recent.load.error path={} error={}", self.file_path, e)
            return []
        if not isinstance(raw, list):
            logger.error("recent.load.error path={} error=expected a list", self.file_path)
            return []
        chats: list[RecentChat] = []
        for item in raw:
            try:
                chats.append(
                    RecentChat(
                        fs_path=str(item["fs_path"]),
                        url=str(item["url"]),
                        permissions=[str(p) for p in item.get("permissions", [])],
                        timestamp=int(item.get("timestamp", 0)),
                    )
                )
            except (KeyError, TypeError, ValueError, AttributeError):
                logger.warning("recent.load.skipped entry={!r}", item)
        return chats

    def _save(self, chats: list[RecentChat]) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.file_path, "w", encoding="utf-8") as f:
                json.dump([asdict(chat) for chat in chats], f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.error("recent.save.error path={} error={}", self.file_path, e)
