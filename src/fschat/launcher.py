"""Ask the chat server to open a session for a filesystem path."""

from __future__ import annotations

from urllib.parse import urljoin

import aiohttp
from loguru import logger

from fschat.errors import FsChatError

START_CHAT_PATH = "/start-chat"


async def start_chat(base_url: str, fs_path: str, permissions: list[str]) -> str:
    """POST a start-chat request and return the URL of the new session."""
    if not permissions:
        raise FsChatError("at least one permission is required")
    endpoint = urljoin(base_url, START_CHAT_PATH)
    payload = {"fs_path": fs_path, "permissions": permissions}
    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(endpoint, json=payload, headers={"Accept": "application/json"}) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise FsChatError(text or f"failed to start chat (HTTP {response.status})")
                data = await response.json(content_type=None)
    except aiohttp.ClientError as exc:
        raise FsChatError(f"failed to start chat: {exc}") from exc

    url = data.get("url") if isinstance(data, dict) else None
    if not isinstance(url, str) or not url:
        raise FsChatError("start-chat response has no url")
    logger.info("launcher.started fs_path={} url={}", fs_path, url)
    return url
