"""Client links: how logical calls reach the wire.

``LinearLink`` sends one request per call. ``BatchLink`` accumulates calls
into a window and sends the window as one batch when it reaches ``max``
entries or when ``timeout`` seconds have passed since its first entry,
whichever comes first. Replies are matched to callers by request id.

A BatchLink belongs to one event loop: the window, the timer handle and
the pending map are only touched from synchronous sections on that loop,
which makes every read-modify-write on them atomic.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any

from loguru import logger

from pcall.client.transport import Transport
from pcall.errors import ErrorKind, RPCError
from pcall.protocol import RequestId, RPCRequest, RPCResponse, decode_response_body, encode_request

DEFAULT_MAX = 10
DEFAULT_TIMEOUT = 0.1


class LinearLink:
    """One HTTP round-trip per call."""

    def __init__(self, url: str, transport: Transport, *, log_calls: bool = False):
        self.url = url
        self.transport = transport
        self.log_calls = log_calls
        self._ids = itertools.count(1)

    async def call(self, method: str, params: Any = None) -> Any:
        request = RPCRequest(id=next(self._ids), method=method, params=params)
        if self.log_calls:
            logger.info(">> {} {}", request.method, request.params)
        body = await self.transport.post(self.url, encode_request(request))
        response = decode_response_body(body)
        if isinstance(response, list):
            raise RPCError(ErrorKind.PARSE_ERROR, "expected a single response, got a batch")
        if response.error is not None:
            if self.log_calls:
                logger.error("<< {} {}", request.method, response.error.model_dump(mode="json"))
            raise response.error.to_error()
        if self.log_calls:
            logger.info("<< {} {}", request.method, response.result)
        return response.result

    async def aclose(self) -> None:
        return None


class BatchLink:
    """Coalesces calls into batches under a size/time policy."""

    def __init__(
        self,
        url: str,
        transport: Transport,
        *,
        max: int = DEFAULT_MAX,
        timeout: float = DEFAULT_TIMEOUT,
        log_calls: bool = False,
    ):
        if max < 1:
            raise ValueError("batch max must be at least 1")
        if timeout < 0:
            raise ValueError("batch timeout must not be negative")
        self.url = url
        self.transport = transport
        self.max = max
        self.timeout = timeout
        self.log_calls = log_calls
        self._ids = itertools.count(0)
        self._requests: list[RPCRequest] = []
        self._pending: dict[RequestId, asyncio.Future[Any]] = {}
        self._timer: asyncio.TimerHandle | None = None
        self._inflight: set[asyncio.Task[None]] = set()

    @property
    def window(self) -> list[RPCRequest]:
        """Requests waiting for the next flush (a copy)."""
        return list(self._requests)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def timer_scheduled(self) -> bool:
        return self._timer is not None

    def add_request(self, method: str, params: Any = None) -> asyncio.Future[Any]:
        """Queue one call and return a future for its result.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        request = RPCRequest(id=next(self._ids), method=method, params=params)
        future: asyncio.Future[Any] = loop.create_future()
        self._requests.append(request)
        self._pending[request.id] = future

        if len(self._requests) >= self.max:
            logger.debug("== max reached | requests: {} ==", len(self._requests))
            self._cancel_timer()
            self._schedule_send()
        elif self._timer is None:
            logger.debug("== setting timeout | requests: {} ==", len(self._requests))
            self._timer = loop.call_later(self.timeout, self._on_timer)
        return future

    async def call(self, method: str, params: Any = None) -> Any:
        return await self.add_request(method, params)

    async def flush(self) -> None:
        """Send the current window now and wait for its replies to be routed."""
        self._cancel_timer()
        batch = self._take_window()
        if batch:
            await self._send(batch)

    async def aclose(self) -> None:
        """Flush what is queued and wait for every in-flight batch."""
        await self.flush()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        self._schedule_send()

    def _take_window(self) -> list[RPCRequest]:
        # Swap, not copy-then-clear: calls added during the round-trip open a new window.
        batch, self._requests = self._requests, []
        return batch

    def _schedule_send(self) -> None:
        batch = self._take_window()
        if not batch:
            return
        task = asyncio.ensure_future(self._send(batch))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _send(self, batch: list[RPCRequest]) -> None:
        logger.debug("== sending batch | requests: {} ==", len(batch))
        if self.log_calls:
            logger.info(">> batch {}", [r.method for r in batch])
        try:
            body = await self.transport.post(self.url, encode_request(batch))
            replies = decode_response_body(body)
        except asyncio.CancelledError:
            self._reject(batch, RPCError(ErrorKind.CLIENT_CLOSED_REQUEST, "batch was cancelled"))
            raise
        except Exception as e:
            logger.warning("Batch of {} failed in transport: {}", len(batch), e)
            self._reject(batch, e)
            return

        if not isinstance(replies, list):
            # A single envelope for a batch is a whole-batch failure (e.g. PARSE_ERROR).
            failure = replies.rpc_error or RPCError(ErrorKind.PARSE_ERROR, "expected a batch reply")
            self._reject(batch, failure)
            return

        for reply in replies:
            self._settle(reply)
        # Ids the server never answered must not hang their callers.
        missing = [r for r in batch if r.id in self._pending]
        for request in missing:
            future = self._pending.pop(request.id)
            if not future.done():
                future.set_exception(
                    RPCError(ErrorKind.INTERNAL_SERVER_ERROR, f"no response for request id {request.id}")
                )

    def _settle(self, reply: RPCResponse) -> None:
        future = self._pending.pop(reply.id, None) if reply.id is not None else None
        if future is None:
            logger.warning("No pending request with id {} (reply ignored)", reply.id)
            return
        if future.done():
            return
        if reply.error is not None:
            if self.log_calls:
                logger.error("<< batch id={} {}", reply.id, reply.error.model_dump(mode="json"))
            future.set_exception(reply.error.to_error())
        else:
            if self.log_calls:
                logger.info("<< batch id={} {}", reply.id, reply.result)
            future.set_result(reply.result)

    def _reject(self, batch: list[RPCRequest], exc: BaseException) -> None:
        for request in batch:
            future = self._pending.pop(request.id, None)
            if future is not None and not future.done():
                future.set_exception(exc)
