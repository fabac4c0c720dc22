"""Wire transports for the RPC client."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import httpx

from pcall.utils.exceptions import TransportError


@runtime_checkable
class Transport(Protocol):
    """Sends one JSON body and returns the raw response text."""

    async def post(self, url: str, body: str) -> str:
        ...

    async def aclose(self) -> None:
        ...


class HttpTransport:
    """HTTP POST transport backed by httpx.

    Error statuses are not failures here: the server answers RPC errors with
    their mapped status and a structured body, which the caller decodes.
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._timeout = timeout
        self._headers = {"content-type": "application/json", **(headers or {})}
        self._http_client = http_client

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def post(self, url: str, body: str) -> str:
        client = self._get_http_client()
        try:
            resp = await client.post(url, content=body, headers=self._headers)
        except httpx.TimeoutException as exc:
            raise TransportError(f"rpc timeout: POST {url}", url=url) from exc
        except httpx.RequestError as exc:
            raise TransportError(f"rpc network error: POST {url}: {exc}", url=url) from exc
        if resp.status_code >= 500 and "json" not in resp.headers.get("content-type", ""):
            raise TransportError(
                f"rpc http error {resp.status_code}: {resp.text[:200]}",
                url=url,
                status_code=resp.status_code,
            )
        return resp.text

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
