"""
Exception hierarchy for pcall contract violations.

RPC call failures use ``pcall.errors.RPCError``. The classes here cover the
other side: misuse of the socket layer (unknown event, channel or
connection, untransmissible payload) and client transport failures. They
are raised loudly and never folded into the RPC error taxonomy.
"""

from __future__ import annotations

from typing import Any


class PcallError(Exception):
    """Base exception for pcall runtime errors."""

    def __init__(
        self,
        message: str,
        code: str = "PCALL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class SocketProtocolError(PcallError):
    """A message or call violated the socket-layer contract."""

    def __init__(self, message: str, code: str = "SOCKET_PROTOCOL_ERROR", details: dict[str, Any] | None = None):
        super().__init__(message, code=code, details=details)


class UnknownEventError(SocketProtocolError):
    """No handler is registered for an incoming named event."""

    def __init__(self, event: str):
        super().__init__(
            f"No handler for event: {event}",
            code="UNKNOWN_EVENT",
            details={"event": event},
        )


class UnknownChannelError(SocketProtocolError):
    """A channel id was used that was never joined or created."""

    def __init__(self, channel_id: str):
        super().__init__(
            f"No channel with id: {channel_id}",
            code="UNKNOWN_CHANNEL",
            details={"channel_id": channel_id},
        )


class UnknownConnectionError(SocketProtocolError):
    """A connection id is not (or no longer) registered."""

    def __init__(self, connection_id: str):
        super().__init__(
            f"No connection with id: {connection_id}",
            code="UNKNOWN_CONNECTION",
            details={"connection_id": connection_id},
        )


class PayloadTypeError(SocketProtocolError):
    """A payload entry has a type tag (or a value) the vocabulary does not allow."""

    def __init__(self, message: str, type_tag: str | None = None):
        details = {"type": type_tag} if type_tag else {}
        super().__init__(message, code="PAYLOAD_TYPE_ERROR", details=details)


class TransportError(PcallError):
    """The network round-trip failed before a structured response was recovered."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        super().__init__(
            message,
            code="TRANSPORT_ERROR",
            details={"url": url, "status_code": status_code},
        )
        self.status_code = status_code
