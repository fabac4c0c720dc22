import httpx
import pytest

from pcall.client.transport import HttpTransport, Transport
from pcall.utils.exceptions import TransportError


def _transport(handler):
    return HttpTransport(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_post_returns_body_even_for_error_status():
    seen = {}

    def _handler(request):
        seen["body"] = request.content
        seen["content_type"] = request.headers["content-type"]
        return httpx.Response(404, json={"id": 1, "jsonrpc": "2.0", "error": {"code": 404, "status": "NOT_FOUND"}})

    transport = _transport(_handler)
    text = await transport.post("http://rpc.test/rpc", '{"id": 1}')
    assert '"NOT_FOUND"' in text
    assert seen["body"] == b'{"id": 1}'
    assert seen["content_type"] == "application/json"
    await transport.aclose()


@pytest.mark.asyncio
async def test_network_failure_becomes_transport_error():
    def _handler(request):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(TransportError) as exc:
        await _transport(_handler).post("http://rpc.test/rpc", "{}")
    assert exc.value.code == "TRANSPORT_ERROR"
    assert exc.value.details["url"] == "http://rpc.test/rpc"


@pytest.mark.asyncio
async def test_non_json_server_failure_becomes_transport_error():
    def _handler(request):
        return httpx.Response(502, text="Bad Gateway")

    with pytest.raises(TransportError) as exc:
        await _transport(_handler).post("http://rpc.test/rpc", "{}")
    assert exc.value.status_code == 502


@pytest.mark.asyncio
async def test_json_server_failure_is_left_to_the_caller():
    def _handler(request):
        return httpx.Response(500, json={"id": 1, "jsonrpc": "2.0", "error": {"code": 500, "status": "INTERNAL_SERVER_ERROR"}})

    text = await _transport(_handler).post("http://rpc.test/rpc", "{}")
    assert "INTERNAL_SERVER_ERROR" in text


def test_http_transport_satisfies_protocol():
    assert isinstance(HttpTransport(), Transport)
