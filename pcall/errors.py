"""RPC error model: a closed set of error kinds with a fixed status-code table.

Every failure that travels back to a caller is an ``RPCError``. Anything
else that reaches the dispatch boundary is wrapped as
``INTERNAL_SERVER_ERROR`` by ``to_rpc_error``.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Stable error kinds shared by server and client."""

    PARSE_ERROR = "PARSE_ERROR"
    INPUT_PARSE_ERROR = "INPUT_PARSE_ERROR"
    OUTPUT_PARSE_ERROR = "OUTPUT_PARSE_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_SUPPORTED = "METHOD_NOT_SUPPORTED"
    TIMEOUT = "TIMEOUT"
    CONFLICT = "CONFLICT"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    UNPROCESSABLE_CONTENT = "UNPROCESSABLE_CONTENT"
    TOO_MANY_REQUESTS = "TOO_MANY_REQUESTS"
    CLIENT_CLOSED_REQUEST = "CLIENT_CLOSED_REQUEST"


# 418 marks the parse family apart from ordinary 4xx/5xx; wire compatible.
RPC_ERROR_CODES_BY_STATUS: dict[ErrorKind, int] = {
    ErrorKind.PARSE_ERROR: 418,
    ErrorKind.INPUT_PARSE_ERROR: 418,
    ErrorKind.OUTPUT_PARSE_ERROR: 418,
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.INTERNAL_SERVER_ERROR: 500,
    ErrorKind.NOT_IMPLEMENTED: 501,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.METHOD_NOT_SUPPORTED: 405,
    ErrorKind.TIMEOUT: 408,
    ErrorKind.CONFLICT: 409,
    ErrorKind.PRECONDITION_FAILED: 412,
    ErrorKind.PAYLOAD_TOO_LARGE: 413,
    ErrorKind.UNPROCESSABLE_CONTENT: 422,
    ErrorKind.TOO_MANY_REQUESTS: 429,
    ErrorKind.CLIENT_CLOSED_REQUEST: 499,
}


class RPCError(Exception):
    """A transmissible RPC failure. ``code`` is derived from ``status``."""

    def __init__(self, status: ErrorKind | str, message: str = ""):
        kind = ErrorKind(status)
        super().__init__(message or kind.value)
        self._status = kind
        self._code = RPC_ERROR_CODES_BY_STATUS[kind]
        self._message = message

    @property
    def status(self) -> ErrorKind:
        return self._status

    @property
    def code(self) -> int:
        return self._code

    @property
    def message(self) -> str:
        return self._message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self._code, "status": self._status.value, "message": self._message}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RPCError:
        """Rebuild an error from its wire shape; unknown kinds become INTERNAL_SERVER_ERROR."""
        status = data.get("status")
        message = str(data.get("message") or "")
        try:
            return cls(ErrorKind(status), message)
        except ValueError:
            return cls(ErrorKind.INTERNAL_SERVER_ERROR, message or f"unknown error status: {status}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RPCError):
            return NotImplemented
        return self._status == other._status and self._message == other._message

    def __hash__(self) -> int:
        return hash((self._status, self._message))

    def __repr__(self) -> str:
        return f"RPCError({self._status.value!r}, {self._message!r})"

    def __str__(self) -> str:
        return f"[{self._status.value}] {self._message}"


def error(status: ErrorKind | str, message: str = "") -> RPCError:
    """Shorthand used by procedures: ``raise error("NOT_FOUND", "no such user")``."""
    return RPCError(status, message)


_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|token|secret|password|auth)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"sk-[a-zA-Z0-9]{20,}"),
    re.compile(r"[a-zA-Z0-9]{32,}"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove credential-looking fragments from an error message."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def to_rpc_error(exc: BaseException) -> RPCError:
    """Forward an RPCError unchanged, wrap anything else as INTERNAL_SERVER_ERROR."""
    if isinstance(exc, RPCError):
        return exc
    return RPCError(ErrorKind.INTERNAL_SERVER_ERROR, sanitize_error_message(str(exc)))


def http_status_for(err: RPCError | None) -> int:
    """HTTP status mirroring a response's error; 200 when there is none."""
    if err is None:
        return 200
    return err.code
