"""
pcall - typed remote procedure calls over HTTP and websockets.
"""

__version__ = "0.1.0"
__logo__ = "📞"

from pcall.errors import ErrorKind, RPCError, error
from pcall.protocol import RPCRequest, RPCResponse
from pcall.router import Procedure, Router, procedure, router
from pcall.caller import create_caller
from pcall.server.app import create_app, run_server
from pcall.client.client import RPCClient, create_client
from pcall.socket.server import IO, Socket
from pcall.socket.client import SocketClient

__all__ = [
    "__version__",
    "ErrorKind",
    "RPCError",
    "error",
    "RPCRequest",
    "RPCResponse",
    "Procedure",
    "Router",
    "procedure",
    "router",
    "create_caller",
    "create_app",
    "run_server",
    "RPCClient",
    "create_client",
    "IO",
    "Socket",
    "SocketClient",
]
