"""Duplex transport capability and its aiohttp websocket implementation."""

from __future__ import annotations

import asyncio
from typing import Protocol
from urllib.parse import urljoin, urlsplit, urlunsplit

import aiohttp
from loguru import logger

from fschat.errors import TransportError

DEFAULT_HEARTBEAT_SECONDS = 20.0
DEFAULT_OPEN_TIMEOUT_SECONDS = 10.0
_WS_SCHEMES = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


class Connection(Protocol):
    """One open duplex connection."""

    async def send(self, frame: str) -> None: ...

    async def receive(self) -> str | bytes | None:
        """Next inbound frame, or None once the connection is closed."""
        ...

    async def close(self) -> None: ...


class EventSource(Protocol):
    """Something that can open connections to the chat server."""

    async def open(self) -> Connection: ...


def resolve_ws_url(url: str, base_url: str) -> str:
    """Return an absolute ws/wss URL, joining relative paths onto `base_url`."""
    parts = urlsplit(url)
    if parts.scheme in ("ws", "wss"):
        return url
    joined = urlsplit(urljoin(base_url, url))
    scheme = _WS_SCHEMES.get(joined.scheme)
    if scheme is None:
        raise ValueError(f"cannot derive a websocket URL from {url!r} and {base_url!r}")
    return urlunsplit((scheme, joined.netloc, joined.path or "/", joined.query, ""))


class WebSocketConnection:
    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse) -> None:
        self._session = session
        self._ws = ws

    async def send(self, frame: str) -> None:
        try:
            await self._ws.send_str(frame)
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as exc:
            raise TransportError(f"send failed: {exc}") from exc

    async def receive(self) -> str | bytes | None:
        while True:
            msg = await self._ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                return msg.data
            if msg.type == aiohttp.WSMsgType.BINARY:
                return msg.data
            if msg.type == aiohttp.WSMsgType.ERROR:
                logger.warning("transport.ws.error error={}", self._ws.exception())
                return None
            if msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                return None

    async def close(self) -> None:
        try:
            await self._ws.close()
        finally:
            await self._session.close()


class WebSocketSource:
    """Open websocket connections with aiohttp."""

    def __init__(
        self,
        url: str,
        *,
        heartbeat: float | None = DEFAULT_HEARTBEAT_SECONDS,
        open_timeout: float = DEFAULT_OPEN_TIMEOUT_SECONDS,
    ) -> None:
        self.url = url
        self._heartbeat = heartbeat
        self._open_timeout = open_timeout

    async def open(self) -> Connection:
        session = aiohttp.ClientSession()
        try:
            async with asyncio.timeout(self._open_timeout):
                ws = await session.ws_connect(self.url, heartbeat=self._heartbeat)
        except (aiohttp.ClientError, OSError, TimeoutError) as exc:
            await session.close()
            raise TransportError(f"cannot connect to {self.url}: {exc}") from exc
        except BaseException:
            await session.close()
            raise
        return WebSocketConnection(session, ws)
