"""Call builder: ``api.users.get_by_id({"id": 1})`` without a method table.

Each attribute (or item) access returns a new builder one segment deeper;
calling a builder hands ``(path, args)`` to the callback and returns
whatever the callback returns, usually something awaitable.
"""

from __future__ import annotations

from typing import Any, Callable

CallCallback = Callable[[list[str], list[Any]], Any]

APPLY_SEGMENT = "apply"


class CallBuilder:
    __slots__ = ("_callback", "_path")

    def __init__(self, callback: CallCallback, path: tuple[str, ...] = ()):
        self._callback = callback
        self._path = path

    def __getattr__(self, name: str) -> CallBuilder:
        if name.startswith("_"):
            raise AttributeError(name)
        return CallBuilder(self._callback, (*self._path, name))

    def __getitem__(self, name: str) -> CallBuilder:
        """Segments that are not identifiers: ``api["$ws"]``, ``api.users["get-by-id"]``."""
        if not isinstance(name, str) or not name:
            raise KeyError(name)
        return CallBuilder(self._callback, (*self._path, name))

    def __call__(self, *args: Any) -> Any:
        path = list(self._path)
        call_args = list(args)
        # fn.apply(this, [args]) form: the second argument is the argument list.
        if path and path[-1] == APPLY_SEGMENT:
            path = path[:-1]
            call_args = list(args[1]) if len(args) >= 2 and args[1] is not None else []
        return self._callback(path, call_args)

    def __repr__(self) -> str:
        return f"CallBuilder({'.'.join(self._path) or '<root>'})"
