import pytest

from pcall.client.proxy import CallBuilder


def _recorder():
    calls = []

    def _callback(path, args):
        calls.append((path, args))
        return "sentinel"

    return CallBuilder(_callback), calls


def test_attribute_chain_resolves_to_path_and_args():
    api, calls = _recorder()
    assert api.users.getById({"id": 1}) == "sentinel"
    assert calls == [(["users", "getById"], [{"id": 1}])]


def test_apply_segment_unwraps_argument_list():
    api, calls = _recorder()
    api.users.create.apply(None, [{"name": "x"}, 2])
    api.users.create.apply(None)
    assert calls == [
        (["users", "create"], [{"name": "x"}, 2]),
        (["users", "create"], []),
    ]


def test_item_access_allows_reserved_and_odd_segments():
    api, calls = _recorder()
    api["$ws"]()
    api.files["get-by-name"]("a.txt")
    assert calls == [(["$ws"], []), (["files", "get-by-name"], ["a.txt"])]


def test_private_attributes_are_not_segments():
    api, calls = _recorder()
    with pytest.raises(AttributeError):
        api._secret
    assert calls == []


def test_builders_are_independent():
    api, calls = _recorder()
    users = api.users
    users.list()
    users.get(1)
    assert calls == [(["users", "list"], []), (["users", "get"], [1])]
    assert repr(users) == "CallBuilder(users)"
