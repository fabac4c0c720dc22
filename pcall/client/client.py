"""RPC client facade: a call proxy over a linear or batching link."""

from __future__ import annotations

from typing import Any, Literal

from pcall.client.links import BatchLink, LinearLink
from pcall.client.proxy import CallBuilder
from pcall.client.transport import HttpTransport, Transport
from pcall.config.schema import BatchConfig, ClientConfig
from pcall.socket.client import SocketClient, get_websocket_url

SOCKET_SEGMENT = "$ws"


class RPCClient:
    """Holds the link and exposes ``api``, the dynamic call proxy.

    ``api["$ws"]()`` (or ``socket()``) returns an unconnected SocketClient
    for the server's socket layer.
    """

    def __init__(
        self,
        url: str,
        *,
        link: Literal["linear", "batch"] = "linear",
        batch: BatchConfig | dict[str, Any] | None = None,
        transport: Transport | None = None,
        request_timeout: float = 30.0,
        log_calls: bool = False,
        ws_path: str = "/ws",
    ):
        self.url = url.rstrip("/")
        self.ws_path = ws_path
        self.transport = transport or HttpTransport(timeout=request_timeout)
        if link == "batch":
            opts = batch if isinstance(batch, BatchConfig) else BatchConfig(**(batch or {}))
            self.link: LinearLink | BatchLink = BatchLink(
                f"{self.url}?batch",
                self.transport,
                max=opts.max,
                timeout=opts.timeout,
                log_calls=log_calls,
            )
        elif link == "linear":
            self.link = LinearLink(self.url, self.transport, log_calls=log_calls)
        else:
            raise ValueError(f"unknown link mode: {link!r}")
        self.api = CallBuilder(self._route)

    def _route(self, path: list[str], args: list[Any]) -> Any:
        if len(path) == 1 and path[0] == SOCKET_SEGMENT:
            return self.socket()
        method = ".".join(path)
        params = args[0] if args else None
        if isinstance(self.link, BatchLink):
            # Queue now so calls made together share a window.
            return self.link.add_request(method, params)
        return self.link.call(method, params)

    def socket(self) -> SocketClient:
        return SocketClient(get_websocket_url(self.url, self.ws_path))

    async def aclose(self) -> None:
        await self.link.aclose()
        await self.transport.aclose()

    async def __aenter__(self) -> RPCClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def create_client(
    url: str,
    *,
    config: ClientConfig | None = None,
    link: Literal["linear", "batch"] | None = None,
    batch: BatchConfig | dict[str, Any] | None = None,
    transport: Transport | None = None,
    ws_path: str = "/ws",
) -> RPCClient:
    """Build an RPCClient; explicit arguments override ``config``."""
    cfg = config or ClientConfig()
    return RPCClient(
        url,
        link=link or cfg.link,
        batch=batch if batch is not None else cfg.batch,
        transport=transport,
        request_timeout=cfg.request_timeout,
        log_calls=cfg.log_calls,
        ws_path=ws_path,
    )
