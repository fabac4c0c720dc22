"""FastAPI adapter: HTTP single/batch calls plus the optional socket layer.

The adapter builds the per-call context from the inbound request, hands the
raw body to the dispatch engine, and mirrors the response's error status.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Callable

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from pcall.config.schema import Config
from pcall.errors import ErrorKind, RPCError, sanitize_error_message
from pcall.protocol import RPCResponse
from pcall.router import FlatRouter, Router, ensure_flat
from pcall.server.dispatch import ErrorHook, handle_body
from pcall.socket.endpoint import make_websocket_endpoint
from pcall.socket.server import IO
from pcall.utils.helpers import maybe_await

ContextFactory = Callable[[Request], Any]


def create_app(
    target: Router | FlatRouter,
    *,
    context: ContextFactory | None = None,
    on_error: ErrorHook | None = None,
    io: IO | None = None,
    config: Config | None = None,
    title: str = "pcall",
) -> FastAPI:
    """Create a FastAPI app serving ``target`` at ``config.server.endpoint``.

    ``context(request)`` may be sync or async; its value is passed to every
    procedure of that HTTP call. When ``io`` is given, the socket layer is
    mounted at ``config.server.ws_path`` and closed on shutdown.
    """
    cfg = config or Config()
    flat_router = ensure_flat(target)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("pcall server ready: {} procedure(s) at {}", len(flat_router), cfg.server.endpoint)
        try:
            yield
        finally:
            if io is not None:
                await io.close_all()
            logger.info("pcall server stopped")

    app = FastAPI(title=title, lifespan=lifespan)
    app.state.flat_router = flat_router
    app.state.io = io

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RPCError)
    async def rpc_error_handler(request: Request, exc: RPCError):
        return JSONResponse(status_code=exc.code, content=RPCResponse.failure(None, exc).to_wire())

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        sanitized = sanitize_error_message(str(exc))
        logger.exception("Unhandled exception at {}: {}", request.url.path, sanitized)
        err = RPCError(ErrorKind.INTERNAL_SERVER_ERROR, "An unexpected error occurred")
        return JSONResponse(status_code=500, content=RPCResponse.failure(None, err).to_wire())

    @app.post(cfg.server.endpoint)
    async def rpc_endpoint(request: Request):
        ctx = await maybe_await(context(request)) if context is not None else None
        body = await request.body()
        status_code, payload = await handle_body(
            flat_router,
            body,
            ctx,
            batch="batch" in request.query_params,
            on_error=on_error,
        )
        return JSONResponse(status_code=status_code, content=payload)

    if io is not None:
        app.add_api_websocket_route(
            cfg.server.ws_path,
            make_websocket_endpoint(io, max_message_bytes=cfg.socket.max_message_bytes),
        )

    return app


def run_server(app: FastAPI, host: str = "127.0.0.1", port: int = 8000) -> None:
    """Run the app with uvicorn (blocks)."""
    uvicorn.run(
        app,
        host=host,
        port=port,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=10,
        log_level="warning",
    )
