import asyncio
import json

import pytest

from pcall.client.client import RPCClient, create_client
from pcall.client.links import BatchLink, LinearLink
from pcall.config.schema import BatchConfig, ClientConfig
from pcall.errors import ErrorKind, RPCError
from pcall.socket.client import SocketClient


class _Transport:
    def __init__(self, results=None):
        self.results = results or {}
        self.calls = []
        self.closed = False

    def _answer(self, req):
        if req["method"] not in self.results:
            return {
                "id": req["id"],
                "jsonrpc": "2.0",
                "error": {"code": 404, "status": "NOT_FOUND", "message": f"unknown method: {req['method']}"},
            }
        return {"id": req["id"], "jsonrpc": "2.0", "result": self.results[req["method"]]}

    async def post(self, url, body):
        data = json.loads(body)
        self.calls.append((url, data))
        if isinstance(data, list):
            return json.dumps([self._answer(r) for r in data])
        return json.dumps(self._answer(data))

    async def aclose(self):
        self.closed = True


@pytest.mark.asyncio
async def test_linear_client_posts_dotted_method_and_first_argument():
    transport = _Transport({"users.getById": {"id": 1, "name": "ada"}})
    client = RPCClient("http://localhost:8000/rpc/", transport=transport)
    assert isinstance(client.link, LinearLink)

    result = await client.api.users.getById({"id": 1})
    assert result == {"id": 1, "name": "ada"}
    url, sent = transport.calls[0]
    assert url == "http://localhost:8000/rpc"
    assert sent["method"] == "users.getById"
    assert sent["params"] == {"id": 1}


@pytest.mark.asyncio
async def test_client_raises_server_errors():
    client = RPCClient("http://localhost:8000/rpc", transport=_Transport())
    with pytest.raises(RPCError) as exc:
        await client.api.nope()
    assert exc.value.status is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_batch_client_shares_one_round_trip():
    transport = _Transport({"a": 1, "b": 2})
    client = RPCClient(
        "http://localhost:8000/rpc",
        link="batch",
        batch={"max": 2, "timeout": 5},
        transport=transport,
    )
    assert isinstance(client.link, BatchLink)
    assert await asyncio.gather(client.api.a(), client.api.b()) == [1, 2]
    assert len(transport.calls) == 1
    assert transport.calls[0][0] == "http://localhost:8000/rpc?batch"


@pytest.mark.asyncio
async def test_socket_segment_returns_unconnected_socket_client():
    client = RPCClient("https://example.com/rpc", transport=_Transport())
    sock = client.api["$ws"]()
    assert isinstance(sock, SocketClient)
    assert sock.url == "wss://example.com/ws"
    assert not sock.connected
    assert client.socket().url == "wss://example.com/ws"


@pytest.mark.asyncio
async def test_async_context_manager_closes_transport():
    transport = _Transport({"ping": "pong"})
    async with RPCClient("http://localhost:8000/rpc", link="batch", transport=transport) as client:
        pending = client.api.ping()
    assert await pending == "pong"
    assert transport.closed


def test_create_client_reads_defaults_from_config():
    cfg = ClientConfig(link="batch", batch=BatchConfig(max=4, timeout=0.5))
    client = create_client("http://localhost:8000/rpc", config=cfg, transport=_Transport())
    assert isinstance(client.link, BatchLink)
    assert client.link.max == 4
    assert client.link.timeout == 0.5

    linear = create_client("http://localhost:8000/rpc", config=cfg, link="linear", transport=_Transport())
    assert isinstance(linear.link, LinearLink)


def test_unknown_link_mode_is_rejected():
    with pytest.raises(ValueError):
        RPCClient("http://localhost:8000/rpc", link="carrier-pigeon", transport=_Transport())
