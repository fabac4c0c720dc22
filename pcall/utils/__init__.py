"""Utility functions for pcall."""

from pcall.utils.exceptions import (
    PcallError,
    SocketProtocolError,
    UnknownEventError,
    UnknownChannelError,
    UnknownConnectionError,
    PayloadTypeError,
    TransportError,
)
from pcall.utils.helpers import get_data_path, maybe_await

__all__ = [
    "PcallError",
    "SocketProtocolError",
    "UnknownEventError",
    "UnknownChannelError",
    "UnknownConnectionError",
    "PayloadTypeError",
    "TransportError",
    "maybe_await",
    "get_data_path",
]
