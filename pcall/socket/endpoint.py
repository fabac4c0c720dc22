"""Websocket lifecycle glue between a host websocket and the ``IO`` registry."""

from __future__ import annotations

from typing import Any, Awaitable, Callable

from loguru import logger
from starlette.websockets import WebSocket, WebSocketDisconnect

from pcall.socket.server import CONNECTION_EVENT, IO, Socket
from pcall.utils.exceptions import SocketProtocolError

UNSUPPORTED_DATA = 1003
INTERNAL_ERROR = 1011
MESSAGE_TOO_BIG = 1009


async def bootstrap_socket_connection(*, websocket: Any, io: IO) -> Socket:
    """Accept the websocket and register it with ``io``."""
    await websocket.accept()
    return await io.add_connection(websocket)


async def announce_connection(*, socket: Socket, io: IO) -> None:
    """Run the server-level ``connection`` handler, if one is registered."""
    if io.has_handler(CONNECTION_EVENT):
        await io.trigger(CONNECTION_EVENT, socket.id)


async def receive_frame(websocket: Any) -> str | None:
    """Next text frame, or None for a binary frame. Raises WebSocketDisconnect when the peer leaves."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(code=message.get("code", 1000), reason=message.get("reason"))
    return message.get("text")


async def run_socket_loop(
    *,
    websocket: Any,
    socket: Socket,
    io: IO,
    max_message_bytes: int | None = None,
    logger_error: Callable[..., None] = logger.error,
) -> None:
    """Read frames until the peer goes away, triggering one handler per frame.

    A frame that breaks the protocol or whose handler fails is logged and
    the loop continues. Binary and oversized frames close the connection.
    """
    while True:
        raw = await receive_frame(websocket)
        if raw is None:
            logger_error("Socket {} sent a binary frame; only text frames are accepted", socket.id)
            await websocket.close(code=UNSUPPORTED_DATA)
            return
        if max_message_bytes is not None and len(raw.encode("utf-8")) > max_message_bytes:
            logger_error("Socket {} sent a frame over {} bytes; closing", socket.id, max_message_bytes)
            await websocket.close(code=MESSAGE_TOO_BIG)
            return
        try:
            await io.handle_message(socket.id, raw)
        except SocketProtocolError as e:
            logger_error("Socket {} protocol error [{}]: {}", socket.id, e.code, e.message)
        except Exception:
            logger.exception("Socket {} event handler failed", socket.id)


async def handle_socket_close(
    *,
    socket_id: str,
    io: IO,
    logger_error: Callable[..., None] | None = None,
    exc: Exception | None = None,
) -> None:
    """Run the disconnect sequence after the transport closed or failed."""
    if exc is not None and logger_error is not None:
        logger_error("Socket {} error: {}", socket_id, exc)
    await io.close_connection(socket_id)


async def close_transport(websocket: Any, code: int = INTERNAL_ERROR) -> None:
    """Close the websocket after a fatal error; a transport that is already gone is logged and left."""
    try:
        await websocket.close(code=code)
    except RuntimeError as e:
        logger.debug("Websocket already closed: {}", e)


def make_websocket_endpoint(
    io: IO,
    *,
    max_message_bytes: int | None = None,
) -> Callable[[WebSocket], Awaitable[None]]:
    """Build a Starlette/FastAPI websocket route handler bound to ``io``."""

    async def websocket_endpoint(websocket: WebSocket) -> None:
        socket = await bootstrap_socket_connection(websocket=websocket, io=io)
        try:
            await announce_connection(socket=socket, io=io)
            await run_socket_loop(
                websocket=websocket,
                socket=socket,
                io=io,
                max_message_bytes=max_message_bytes,
            )
        except WebSocketDisconnect:
            await handle_socket_close(socket_id=socket.id, io=io)
        except Exception as e:
            await close_transport(websocket)
            await handle_socket_close(socket_id=socket.id, io=io, logger_error=logger.error, exc=e)
        else:
            await handle_socket_close(socket_id=socket.id, io=io)

    return websocket_endpoint
