import json

import pytest

from pcall.socket.payload import decode_message, encode_message
from pcall.socket.server import IO, ConnectionState
from pcall.utils.exceptions import (
    PayloadTypeError,
    SocketProtocolError,
    UnknownChannelError,
    UnknownConnectionError,
    UnknownEventError,
)


class _Ws:
    def __init__(self, fail=False):
        self.sent = []
        self.closed_with = None
        self.fail = fail

    async def send_text(self, data):
        if self.fail:
            raise ConnectionResetError("peer went away")
        self.sent.append(data)

    async def close(self, code=1000):
        self.closed_with = code

    def events(self):
        return [decode_message(raw) for raw in self.sent]


async def _room(io, *names):
    sockets = {}
    for name in names:
        ws = _Ws()
        sock = await io.add_connection(ws, socket_id=name)
        await sock.join("room")
        sockets[name] = (sock, ws)
    return sockets


@pytest.mark.asyncio
async def test_add_connection_assigns_id_and_opens():
    io = IO()
    sock = await io.add_connection(_Ws())
    assert sock.id.startswith("sock_")
    assert sock.state is ConnectionState.OPEN
    assert io.get_connection(sock.id) is sock
    assert sock.id in io.connections


@pytest.mark.asyncio
async def test_duplicate_connection_id_is_rejected():
    io = IO()
    await io.add_connection(_Ws(), socket_id="a")
    with pytest.raises(SocketProtocolError) as exc:
        await io.add_connection(_Ws(), socket_id="a")
    assert exc.value.code == "DUPLICATE_CONNECTION"


@pytest.mark.asyncio
async def test_join_creates_channel_lazily():
    io = IO()
    sock = await io.add_connection(_Ws(), socket_id="a")
    assert "general" not in io.channels
    await sock.join("general")
    channel = io.get_channel("general")
    assert channel.members == {"a"}
    assert channel.context == {}


@pytest.mark.asyncio
async def test_broadcast_excludes_sender():
    io = IO()
    sockets = await _room(io, "a", "b", "c")
    sender, sender_ws = sockets["a"]

    delivered = await sender.broadcast("room", "message", "hello", {"from": "a"})
    assert delivered == 2
    assert sender_ws.sent == []
    for name in ("b", "c"):
        assert sockets[name][1].events() == [("message", ["hello", {"from": "a"}])]


@pytest.mark.asyncio
async def test_server_broadcast_reaches_all_members_and_emit_reaches_everyone():
    io = IO()
    sockets = await _room(io, "a", "b")
    outsider_ws = _Ws()
    await io.add_connection(outsider_ws, socket_id="z")

    assert await io.broadcast("room", "tick", 1) == 2
    assert outsider_ws.sent == []
    assert await io.emit("announce", "all") == 3
    assert outsider_ws.events() == [("announce", ["all"])]
    assert sockets["a"][1].events() == [("tick", [1]), ("announce", ["all"])]


@pytest.mark.asyncio
async def test_failed_send_does_not_abort_broadcast():
    io = IO()
    await _room(io, "a", "b")
    broken = await io.add_connection(_Ws(fail=True), socket_id="broken")
    await broken.join("room")
    assert await io.broadcast("room", "tick") == 2


@pytest.mark.asyncio
async def test_untransmissible_payload_fails_before_any_send():
    io = IO()
    sockets = await _room(io, "a", "b")
    with pytest.raises(PayloadTypeError):
        await io.broadcast("room", "bad", lambda: None)
    assert all(ws.sent == [] for _, ws in sockets.values())


@pytest.mark.asyncio
async def test_disconnect_fires_before_removal_and_only_once():
    io = IO()
    sockets = await _room(io, "a", "b")
    sock, _ = sockets["a"]
    seen = []

    def _on_disconnect():
        seen.append(("a" in io.connections, "a" in io.get_channel("room").members))

    sock.on("disconnect", _on_disconnect)
    assert await io.close_connection("a") is True
    assert await io.close_connection("a") is False

    assert seen == [(True, True)]
    assert "a" not in io.connections
    assert io.get_channel("room").members == {"b"}
    assert sock.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_failing_disconnect_handler_still_removes_connection():
    io = IO()
    sock = await io.add_connection(_Ws(), socket_id="a")

    def _boom():
        raise RuntimeError("handler bug")

    sock.on("disconnect", _boom)
    await io.close_connection("a")
    assert "a" not in io.connections


@pytest.mark.asyncio
async def test_socket_close_closes_transport_then_disconnects():
    io = IO()
    ws = _Ws()
    sock = await io.add_connection(ws, socket_id="a")
    await sock.close(4000)
    assert ws.closed_with == 4000
    assert "a" not in io.connections
    with pytest.raises(SocketProtocolError) as exc:
        await sock.emit("late")
    assert exc.value.code == "CONNECTION_CLOSED"


@pytest.mark.asyncio
async def test_close_all_uses_going_away_code():
    io = IO()
    sockets = await _room(io, "a", "b")
    await io.close_all()
    assert io.connections == {}
    assert {ws.closed_with for _, ws in sockets.values()} == {1001}


@pytest.mark.asyncio
async def test_unknown_ids_raise_loudly():
    io = IO()
    sock = await io.add_connection(_Ws(), socket_id="a")
    with pytest.raises(UnknownConnectionError):
        io.get_connection("ghost")
    with pytest.raises(UnknownConnectionError):
        await io.join("room", "ghost")
    with pytest.raises(UnknownChannelError):
        await io.broadcast("nowhere", "x")
    with pytest.raises(UnknownChannelError):
        await sock.leave("nowhere")
    with pytest.raises(UnknownEventError) as exc:
        await sock.trigger("never-registered")
    assert exc.value.message == "No handler for event: never-registered"


@pytest.mark.asyncio
async def test_handle_message_routes_to_connection_handler():
    io = IO()
    sock = await io.add_connection(_Ws(), socket_id="a")
    received = []
    sock.on("chat", lambda text, meta: received.append((text, meta)))

    await io.handle_message("a", encode_message("chat", "hi", {"room": 1}))
    assert received == [("hi", {"room": 1})]

    with pytest.raises(UnknownEventError):
        await io.handle_message("a", json.dumps({"event": "other", "payload": []}))

    sock.off("chat")
    assert not sock.has_handler("chat")


@pytest.mark.asyncio
async def test_connection_handler_receives_socket():
    io = IO()
    seen = []
    io.on("connection", seen.append)
    sock = await io.add_connection(_Ws(), socket_id="a")
    await io.trigger("connection", "a")
    assert seen == [sock]
    with pytest.raises(UnknownEventError):
        await io.trigger("other", "a")


@pytest.mark.asyncio
async def test_empty_channels_are_kept_until_pruned():
    io = IO()
    sock = await io.add_connection(_Ws(), socket_id="a")
    await sock.join("room")
    await sock.leave("room")
    assert io.get_channel("room").members == set()

    assert await io.prune_empty_channels() == 1
    assert "room" not in io.channels


@pytest.mark.asyncio
async def test_auto_prune_drops_channel_with_last_member():
    io = IO(prune_empty_channels=True)
    a = await io.add_connection(_Ws(), socket_id="a")
    b = await io.add_connection(_Ws(), socket_id="b")
    await a.join("one")
    await b.join("two")

    await a.leave("one")
    assert "one" not in io.channels
    await io.close_connection("b")
    assert "two" not in io.channels


@pytest.mark.asyncio
async def test_auto_prune_leaves_unrelated_empty_channels_alone():
    io = IO(prune_empty_channels=True)
    await io.add_channel("lobby", context={"topic": "welcome"})
    await io.add_connection(_Ws(), socket_id="a")

    await io.close_connection("a")
    assert io.get_channel("lobby").context == {"topic": "welcome"}


@pytest.mark.asyncio
async def test_add_and_remove_channel_explicitly():
    io = IO()
    channel = await io.add_channel("lobby", context={"topic": "welcome"})
    assert (await io.add_channel("lobby", context={"topic": "other"})) is channel
    assert io.get_channel("lobby").context == {"topic": "welcome"}
    assert await io.remove_channel("lobby") is True
    assert await io.remove_channel("lobby") is False
