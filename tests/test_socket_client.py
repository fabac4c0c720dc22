import asyncio

import pytest

from pcall.socket.client import SocketClient, get_websocket_url
from pcall.socket.payload import decode_message, encode_message
from pcall.utils.exceptions import SocketProtocolError, UnknownEventError


class _FakeWs:
    """In-memory websocket: iterate inbound frames until closed."""

    def __init__(self):
        self.inbound = asyncio.Queue()
        self.sent = []
        self.closed = False

    async def send(self, data):
        self.sent.append(data)

    async def close(self):
        self.closed = True
        await self.inbound.put(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.inbound.get()
        if item is None:
            raise StopAsyncIteration
        return item


def _client():
    ws = _FakeWs()
    urls = []

    async def _connector(url):
        urls.append(url)
        return ws

    return SocketClient("ws://localhost:8000/ws", connector=_connector), ws, urls


@pytest.mark.parametrize(
    "url,ws_path,expected",
    [
        ("http://localhost:8000/rpc", "/ws", "ws://localhost:8000/ws"),
        ("https://example.com/api/rpc", "/ws", "wss://example.com/ws"),
        ("localhost:8000", "/ws", "ws://localhost:8000/ws"),
        ("ws://localhost:9000/", "socket", "ws://localhost:9000/socket"),
    ],
)
def test_get_websocket_url(url, ws_path, expected):
    assert get_websocket_url(url, ws_path) == expected


@pytest.mark.asyncio
async def test_connect_emit_receive_and_close():
    client, ws, urls = _client()
    events = []
    got = asyncio.get_running_loop().create_future()
    client.on("connect", lambda: events.append("connect"))
    client.on("disconnect", lambda: events.append("disconnect"))
    client.on("message", lambda text, meta: got.set_result((text, meta)))

    await client.connect()
    assert client.connected
    assert urls == ["ws://localhost:8000/ws"]

    await client.emit("message", "hi", {"room": "general"})
    assert decode_message(ws.sent[0]) == ("message", ["hi", {"room": "general"}])

    await ws.inbound.put(encode_message("message", "back", {"n": 1}))
    assert await asyncio.wait_for(got, timeout=1) == ("back", {"n": 1})

    await client.close()
    assert ws.closed
    assert not client.connected
    assert events == ["connect", "disconnect"]


@pytest.mark.asyncio
async def test_unhandled_inbound_event_does_not_stop_reader():
    client, ws, _ = _client()
    got = asyncio.get_running_loop().create_future()
    client.on("ok", lambda: got.set_result(True))
    async with client:
        await ws.inbound.put(encode_message("nobody-listens"))
        await ws.inbound.put("not json")
        await ws.inbound.put(encode_message("ok"))
        assert await asyncio.wait_for(got, timeout=1) is True
        assert client.connected


@pytest.mark.asyncio
async def test_emit_requires_open_connection():
    client, _, _ = _client()
    with pytest.raises(SocketProtocolError) as exc:
        await client.emit("message", "hi")
    assert exc.value.code == "SOCKET_NOT_OPEN"


@pytest.mark.asyncio
async def test_dispatch_raises_for_unknown_event_and_off_unregisters():
    client, _, _ = _client()
    client.on("x", lambda value: value * 2)
    assert await client.dispatch(encode_message("x", 21)) == 42
    client.off("x")
    with pytest.raises(UnknownEventError):
        await client.dispatch(encode_message("x", 21))
