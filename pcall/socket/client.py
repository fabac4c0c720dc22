"""Websocket client for the socket layer: named events in both directions."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable
from urllib.parse import urlsplit, urlunsplit

import websockets
from loguru import logger

from pcall.socket.payload import decode_message, encode_message
from pcall.utils.exceptions import SocketProtocolError, UnknownEventError
from pcall.utils.helpers import maybe_await

Handler = Callable[..., Any]
Connector = Callable[[str], Awaitable[Any]]

CONNECT_EVENT = "connect"
DISCONNECT_EVENT = "disconnect"


def get_websocket_url(url: str, ws_path: str = "/ws") -> str:
    """Derive the socket URL from an RPC URL (http->ws, https->wss).

    Only the origin of ``url`` is kept; ``ws_path`` replaces its path.
    """
    if "://" not in url:
        url = f"http://{url}"
    parts = urlsplit(url)
    scheme = {"http": "ws", "https": "wss"}.get(parts.scheme, parts.scheme)
    path = ws_path if ws_path.startswith("/") else f"/{ws_path}"
    return urlunsplit((scheme, parts.netloc, path, "", ""))


async def _default_connector(url: str) -> Any:
    return await websockets.connect(url)


class SocketClient:
    """Event-style websocket client.

    ``connect`` and ``disconnect`` are synthetic events fired when the
    connection opens and closes. An inbound event with no registered
    handler is reported through the logger, never dropped silently.
    """

    def __init__(self, url: str, *, connector: Connector | None = None):
        self.url = url
        self._connector = connector or _default_connector
        self._handlers: dict[str, Handler] = {}
        self._ws: Any = None
        self._reader: asyncio.Task[None] | None = None
        self._open = False

    @property
    def connected(self) -> bool:
        return self._open

    def on(self, event: str, handler: Handler) -> None:
        self._handlers[event] = handler

    def off(self, event: str) -> None:
        self._handlers.pop(event, None)

    async def connect(self) -> SocketClient:
        """Open the connection and start reading frames in the background."""
        if self._open:
            return self
        self._ws = await self._connector(self.url)
        self._open = True
        logger.debug("Socket client connected url={}", self.url)
        await self._fire(CONNECT_EVENT)
        self._reader = asyncio.create_task(self._read_loop())
        return self

    async def emit(self, event: str, *args: Any) -> None:
        if not self._open or self._ws is None:
            raise SocketProtocolError("Socket is not open", code="SOCKET_NOT_OPEN", details={"event": event})
        await self._ws.send(encode_message(event, *args))

    async def close(self) -> None:
        """Close the connection; the ``disconnect`` event fires once the reader stops."""
        if self._ws is not None:
            await self._ws.close()
        if self._reader is not None:
            await self._reader
            self._reader = None

    async def __aenter__(self) -> SocketClient:
        return await self.connect()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _fire(self, event: str, *args: Any) -> None:
        handler = self._handlers.get(event)
        if handler is not None:
            await maybe_await(handler(*args))

    async def dispatch(self, raw: str | bytes) -> Any:
        """Decode one frame and run its handler; raises on protocol errors."""
        event, args = decode_message(raw)
        handler = self._handlers.get(event)
        if handler is None:
            raise UnknownEventError(event)
        return await maybe_await(handler(*args))

    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                try:
                    await self.dispatch(raw)
                except SocketProtocolError as e:
                    logger.error("Socket client protocol error [{}]: {}", e.code, e.message)
                except Exception:
                    logger.exception("Socket client handler failed")
        except websockets.ConnectionClosed as e:
            logger.debug("Socket client connection closed: {}", e)
        finally:
            self._open = False
            try:
                await self._fire(DISCONNECT_EVENT)
            except Exception:
                logger.exception("Socket client disconnect handler failed")
