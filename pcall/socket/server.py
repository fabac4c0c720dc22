"""Connection registry, per-connection event handlers, and channel broadcast.

One ``IO`` instance owns all mutable socket state for a server. It is
created at startup, handed to the transport endpoint, and torn down with
``close_all()`` at shutdown. Registry and channel mutations run under a
single ``asyncio.Lock``; sends and user handlers always run outside it.

Empty channels are kept until ``remove_channel`` or
``prune_empty_channels`` is called, unless the IO was built with
``prune_empty_channels=True``.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping, Protocol

from loguru import logger

from pcall.socket.payload import decode_message, encode_message
from pcall.utils.exceptions import (
    SocketProtocolError,
    UnknownChannelError,
    UnknownConnectionError,
    UnknownEventError,
)
from pcall.utils.helpers import maybe_await

Handler = Callable[..., Any]

CONNECTION_EVENT = "connection"
DISCONNECT_EVENT = "disconnect"


class SocketTransport(Protocol):
    """What a Socket needs from the underlying websocket."""

    async def send_text(self, data: str) -> None:
        ...

    async def close(self, code: int = 1000) -> None:
        ...


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class Channel:
    """A broadcast scope: a named set of connection ids."""

    id: str
    members: set[str] = field(default_factory=set)
    context: Any = None


class Socket:
    """One live connection and its event handlers (one handler per event)."""

    def __init__(self, socket_id: str, transport: SocketTransport, io: IO):
        self.id = socket_id
        self.transport = transport
        self.io = io
        self.state = ConnectionState.CONNECTING
        self._handlers: dict[str, Handler] = {}
        self._closing = False

    def __repr__(self) -> str:
        return f"Socket(id={self.id!r}, state={self.state.value})"

    def on(self, event: str, handler: Handler) -> None:
        """Register the handler for ``event``; a later registration replaces it."""
        self._handlers[event] = handler

    def off(self, event: str) -> None:
        self._handlers.pop(event, None)

    def has_handler(self, event: str) -> bool:
        return event in self._handlers

    async def trigger(self, event: str, *data: Any) -> Any:
        """Run the handler registered for ``event``; a missing handler is an error."""
        handler = self._handlers.get(event)
        if handler is None:
            raise UnknownEventError(event)
        return await maybe_await(handler(*data))

    async def emit(self, event: str, *data: Any) -> None:
        """Send ``event`` with ``data`` to this connection's peer."""
        await self.send_frame(encode_message(event, *data), event=event)

    async def send_frame(self, frame: str, *, event: str | None = None) -> None:
        if self.state is ConnectionState.CLOSED:
            raise SocketProtocolError(
                f"Connection {self.id} is closed",
                code="CONNECTION_CLOSED",
                details={"connection_id": self.id, "event": event},
            )
        await self.transport.send_text(frame)

    async def join(self, channel_id: str) -> None:
        await self.io.join(channel_id, self.id)

    async def leave(self, channel_id: str) -> None:
        await self.io.leave(channel_id, self.id)

    async def broadcast(self, channel_id: str, event: str, *data: Any) -> int:
        """Broadcast to ``channel_id``, skipping this connection."""
        return await self.io.broadcast(channel_id, event, *data, exclude=self.id)

    async def close(self, code: int = 1000) -> None:
        """Close the transport and run the disconnect sequence."""
        try:
            await self.transport.close(code)
        finally:
            await self.io.close_connection(self.id)


class IO:
    """Socket server state: connections, server-level handlers, and channels."""

    def __init__(self, *, prune_empty_channels: bool = False):
        self.prune_empty = prune_empty_channels
        self._events: dict[str, Handler] = {}
        self._sockets: dict[str, Socket] = {}
        self._channels: dict[str, Channel] = {}
        self._lock = asyncio.Lock()

    # -- server-level events -------------------------------------------------

    def on(self, event: str, handler: Handler) -> None:
        """Register a server-level handler, e.g. ``io.on("connection", setup)``."""
        self._events[event] = handler

    def has_handler(self, event: str) -> bool:
        return event in self._events

    async def trigger(self, event: str, socket_id: str) -> Any:
        """Run the server-level handler for ``event`` with the connection's Socket."""
        handler = self._events.get(event)
        if handler is None:
            raise UnknownEventError(event)
        return await maybe_await(handler(self.get_connection(socket_id)))

    # -- connections ----------------------------------------------------------

    @property
    def connections(self) -> Mapping[str, Socket]:
        return MappingProxyType(self._sockets)

    def get_connection(self, socket_id: str) -> Socket:
        socket = self._sockets.get(socket_id)
        if socket is None:
            raise UnknownConnectionError(socket_id)
        return socket

    async def add_connection(self, transport: SocketTransport, socket_id: str | None = None) -> Socket:
        """Register a new open connection. Channel membership is not implied."""
        sid = socket_id or f"sock_{uuid.uuid4().hex[:12]}"
        async with self._lock:
            if sid in self._sockets:
                raise SocketProtocolError(
                    f"Connection id already registered: {sid}",
                    code="DUPLICATE_CONNECTION",
                    details={"connection_id": sid},
                )
            socket = Socket(sid, transport, self)
            socket.state = ConnectionState.OPEN
            self._sockets[sid] = socket
        logger.info("Socket connected id={} total={}", sid, len(self._sockets))
        return socket

    async def remove_connection(self, socket_id: str) -> bool:
        """Deregister ``socket_id`` and drop it from every channel. Idempotent."""
        async with self._lock:
            socket = self._sockets.pop(socket_id, None)
            emptied = []
            for channel in self._channels.values():
                if socket_id not in channel.members:
                    continue
                channel.members.discard(socket_id)
                if not channel.members:
                    emptied.append(channel.id)
            if self.prune_empty:
                for channel_id in emptied:
                    self._channels.pop(channel_id, None)
        if socket is not None:
            socket.state = ConnectionState.CLOSED
        return socket is not None

    async def close_connection(self, socket_id: str) -> bool:
        """Fire ``disconnect`` on the connection, then remove it.

        Runs at most once per connection; later calls return False.
        """
        async with self._lock:
            socket = self._sockets.get(socket_id)
            if socket is None or socket._closing:
                return False
            socket._closing = True
        try:
            if socket.has_handler(DISCONNECT_EVENT):
                await socket.trigger(DISCONNECT_EVENT)
        except Exception:
            logger.exception("Socket {} disconnect handler failed", socket_id)
        finally:
            await self.remove_connection(socket_id)
        logger.info("Socket disconnected id={} total={}", socket_id, len(self._sockets))
        return True

    async def close_all(self, code: int = 1001) -> None:
        """Close every live connection (server shutdown)."""
        for socket in list(self._sockets.values()):
            try:
                await socket.close(code)
            except Exception as e:
                logger.warning("Socket {} close failed: {}", socket.id, e)

    async def handle_message(self, socket_id: str, raw: str | bytes) -> Any:
        """Decode one inbound frame and trigger the matching handler on the connection."""
        socket = self.get_connection(socket_id)
        event, args = decode_message(raw)
        return await socket.trigger(event, *args)

    async def emit(self, event: str, *data: Any) -> int:
        """Deliver to every registered connection; returns how many sends succeeded."""
        async with self._lock:
            targets = [s for s in self._sockets.values() if s.state is ConnectionState.OPEN]
        return await self._deliver(targets, event, data)

    # -- channels -------------------------------------------------------------

    @property
    def channels(self) -> Mapping[str, Channel]:
        return MappingProxyType(self._channels)

    def get_channel(self, channel_id: str) -> Channel:
        channel = self._channels.get(channel_id)
        if channel is None:
            raise UnknownChannelError(channel_id)
        return channel

    async def add_channel(self, channel_id: str, context: Any = None) -> Channel:
        """Create a channel with ``context``; an existing channel is returned unchanged."""
        async with self._lock:
            channel = self._channels.get(channel_id)
            if channel is None:
                channel = Channel(id=channel_id, context=context)
                self._channels[channel_id] = channel
            return channel

    async def remove_channel(self, channel_id: str) -> bool:
        async with self._lock:
            return self._channels.pop(channel_id, None) is not None

    async def prune_empty_channels(self) -> int:
        """Drop every channel that has no members; returns the number dropped."""
        async with self._lock:
            empty = [cid for cid, ch in self._channels.items() if not ch.members]
            for cid in empty:
                del self._channels[cid]
        return len(empty)

    async def join(self, channel_id: str, socket_id: str) -> Channel:
        """Add a connection to a channel, creating the channel on first join."""
        async with self._lock:
            if socket_id not in self._sockets:
                raise UnknownConnectionError(socket_id)
            channel = self._channels.get(channel_id)
            if channel is None:
                channel = Channel(id=channel_id, context={})
                self._channels[channel_id] = channel
            channel.members.add(socket_id)
            return channel

    async def leave(self, channel_id: str, socket_id: str) -> None:
        async with self._lock:
            channel = self.get_channel(channel_id)
            channel.members.discard(socket_id)
            if self.prune_empty and not channel.members:
                del self._channels[channel_id]

    async def broadcast(self, channel_id: str, event: str, *data: Any, exclude: str | None = None) -> int:
        """Deliver to every channel member except ``exclude``; returns sends that succeeded."""
        async with self._lock:
            channel = self.get_channel(channel_id)
            targets = [
                self._sockets[sid]
                for sid in channel.members
                if sid != exclude and sid in self._sockets
            ]
        return await self._deliver(targets, event, data)

    async def _deliver(self, targets: list[Socket], event: str, data: tuple[Any, ...]) -> int:
        frame = encode_message(event, *data)
        if not targets:
            return 0
        results = await asyncio.gather(
            *(s.send_frame(frame, event=event) for s in targets),
            return_exceptions=True,
        )
        delivered = 0
        for socket, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.warning("Socket {} send of {} failed: {}", socket.id, event, result)
            else:
                delivered += 1
        return delivered
