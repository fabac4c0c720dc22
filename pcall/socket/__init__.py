"""Pub/sub socket layer: connection registry, channels, and event clients."""

from pcall.socket.client import SocketClient, get_websocket_url
from pcall.socket.endpoint import make_websocket_endpoint
from pcall.socket.server import IO, Channel, ConnectionState, Socket

__all__ = [
    "IO",
    "Channel",
    "ConnectionState",
    "Socket",
    "SocketClient",
    "get_websocket_url",
    "make_websocket_endpoint",
]
