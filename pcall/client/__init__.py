"""RPC client: call proxy, links, and transports."""

from pcall.client.client import RPCClient, create_client
from pcall.client.links import BatchLink, LinearLink
from pcall.client.proxy import CallBuilder
from pcall.client.transport import HttpTransport, Transport

__all__ = [
    "RPCClient",
    "create_client",
    "BatchLink",
    "LinearLink",
    "CallBuilder",
    "HttpTransport",
    "Transport",
]
