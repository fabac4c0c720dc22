"""In-process caller: invoke a router's procedures directly, with a chosen context.

Handy for tests and for server code calling its own procedures::

    caller = create_caller(app_router)
    admin = caller({"user": {"id": 1}})
    anon = caller({"user": None})

    await admin.users.list()   # ok
    await anon.users.list()    # raises RPCError
"""

from __future__ import annotations

import itertools
from typing import Any, Callable

from pcall.client.proxy import CallBuilder
from pcall.protocol import RPCRequest
from pcall.router import FlatRouter, Router, ensure_flat
from pcall.server.dispatch import dispatch


def create_caller(target: Router | FlatRouter) -> Callable[[Any], CallBuilder]:
    """Flatten once and return ``caller(ctx) -> CallBuilder``."""
    flat_router = ensure_flat(target)
    ids = itertools.count(1)

    def caller(ctx: Any = None) -> CallBuilder:
        async def invoke(path: list[str], args: list[Any]) -> Any:
            request = RPCRequest(id=next(ids), method=".".join(path), params=args[0] if args else None)
            response = await dispatch(flat_router, request, ctx)
            if response.error is not None:
                raise response.error.to_error()
            return response.result

        return CallBuilder(invoke)

    return caller
