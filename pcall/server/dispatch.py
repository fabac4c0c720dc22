"""Dispatch engine: dotted path + params -> response envelope."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from loguru import logger
from pydantic_core import PydanticSerializationError, to_jsonable_python

from pcall.errors import RPCError, http_status_for
from pcall.protocol import RPCRequest, RPCResponse, decode_request_body
from pcall.router import FlatRouter
from pcall.server.error_boundary import (
    rpc_error_response,
    unhandled_exception_response,
    unknown_method_response,
    unserializable_result_response,
)
from pcall.utils.helpers import maybe_await

ErrorHook = Callable[[BaseException], Any]


async def _notify(on_error: ErrorHook | None, exc: BaseException) -> None:
    if on_error is None:
        return
    try:
        await maybe_await(on_error(exc))
    except Exception:
        logger.exception("on_error hook raised while handling {}", type(exc).__name__)


async def dispatch(
    flat_router: FlatRouter,
    request: RPCRequest,
    context: Any = None,
    *,
    on_error: ErrorHook | None = None,
) -> RPCResponse:
    """Resolve ``request.method`` and invoke it with ``(params, context)``.

    Never raises for procedure failures: the outcome is always a response
    carrying either a result or an error.
    """
    proc = flat_router.get(request.method)
    if proc is None:
        return unknown_method_response(request_id=request.id, method=request.method)

    try:
        result = await proc(request.params, context)
    except RPCError as e:
        await _notify(on_error, e)
        return rpc_error_response(request_id=request.id, method=request.method, exc=e, log_warning=logger.warning)
    except Exception as e:
        await _notify(on_error, e)
        return unhandled_exception_response(
            request_id=request.id,
            method=request.method,
            exc=e,
            log_exception=logger.exception,
        )

    try:
        payload = to_jsonable_python(result)
    except PydanticSerializationError as e:
        return unserializable_result_response(
            request_id=request.id,
            method=request.method,
            exc=e,
            log_error=logger.error,
        )
    return RPCResponse.success(request.id, payload)


async def dispatch_batch(
    flat_router: FlatRouter,
    requests: list[RPCRequest],
    context: Any = None,
    *,
    on_error: ErrorHook | None = None,
) -> list[RPCResponse]:
    """Dispatch each request independently; replies keep the input order."""
    return list(
        await asyncio.gather(*(dispatch(flat_router, req, context, on_error=on_error) for req in requests))
    )


async def handle_body(
    flat_router: FlatRouter,
    body: bytes | str,
    context: Any = None,
    *,
    batch: bool = False,
    on_error: ErrorHook | None = None,
) -> tuple[int, Any]:
    """Decode a raw body, dispatch it, and return ``(http_status, json_payload)``.

    A body that cannot be decoded yields a PARSE_ERROR response with no id.
    Batches always answer 200; a single call mirrors its error's status.
    """
    try:
        decoded = decode_request_body(body)
    except RPCError as e:
        logger.warning("RPC body rejected: {}", e.message)
        await _notify(on_error, e)
        return e.code, RPCResponse.failure(None, e).to_wire()

    if isinstance(decoded, list) or batch:
        requests = decoded if isinstance(decoded, list) else [decoded]
        responses = await dispatch_batch(flat_router, requests, context, on_error=on_error)
        logger.debug("RPC batch size={} failed={}", len(responses), sum(1 for r in responses if not r.ok))
        return 200, [r.to_wire() for r in responses]

    response = await dispatch(flat_router, decoded, context, on_error=on_error)
    logger.info("RPC request method={} ok={}", decoded.method, response.ok)
    return http_status_for(response.rpc_error), response.to_wire()
