"""Error-boundary helpers turning dispatch failures into error responses."""

from __future__ import annotations

from typing import Any, Callable

from pcall.errors import ErrorKind, RPCError, sanitize_error_message
from pcall.protocol import RequestId, RPCResponse


def unknown_method_response(*, request_id: RequestId, method: str) -> RPCResponse:
    """Build the standard NOT_FOUND response for an unresolvable path."""
    return RPCResponse.failure(request_id, RPCError(ErrorKind.NOT_FOUND, f"unknown method: {method}"))


def rpc_error_response(
    *,
    request_id: RequestId,
    method: str,
    exc: RPCError,
    log_warning: Callable[[str, Any, Any, Any], None],
) -> RPCResponse:
    """Forward an RPCError raised by a procedure as-is."""
    log_warning("RPC method {} failed with {}: {}", method, exc.status.value, exc.message)
    return RPCResponse.failure(request_id, exc)


def unhandled_exception_response(
    *,
    request_id: RequestId,
    method: str,
    exc: BaseException,
    log_exception: Callable[[str, Any, Any, Any], None],
) -> RPCResponse:
    """Wrap any other failure as INTERNAL_SERVER_ERROR with a sanitized message."""
    sanitized = sanitize_error_message(str(exc)) or type(exc).__name__
    log_exception("RPC method {} failed with [{}]: {}", method, type(exc).__name__, sanitized)
    return RPCResponse.failure(request_id, RPCError(ErrorKind.INTERNAL_SERVER_ERROR, sanitized))


def unserializable_result_response(
    *,
    request_id: RequestId,
    method: str,
    exc: BaseException,
    log_error: Callable[[str, Any, Any], None],
) -> RPCResponse:
    """A procedure returned something that cannot be put on the wire."""
    log_error("RPC method {} returned an unserializable result: {}", method, exc)
    return RPCResponse.failure(
        request_id,
        RPCError(ErrorKind.OUTPUT_PARSE_ERROR, f"result of {method} is not serializable"),
    )
