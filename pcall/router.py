"""Procedure declaration and router flattening.

Routers are trees of named procedures and sub-routers. Before serving, a
router is flattened once into an immutable ``dotted.path -> Procedure``
table; dispatch only ever reads that table.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Union

from pcall.utils.helpers import maybe_await

ProcedureFn = Callable[..., Any]
FlatRouter = Mapping[str, "Procedure"]


def _positional_arity(fn: ProcedureFn) -> int:
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return 2
    count = 0
    for param in sig.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return 2
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return min(count, 2)


@dataclass(frozen=True)
class Procedure:
    """A server-side unit of work taking ``(input, ctx)``.

    Functions declaring fewer positional parameters are called with fewer
    arguments, so ``lambda: "pong"`` and ``lambda data: ...`` both work.
    """

    fn: ProcedureFn
    description: str | None = None
    _arity: int = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_arity", _positional_arity(self.fn))

    async def __call__(self, params: Any, ctx: Any) -> Any:
        args = (params, ctx)[: self._arity]
        return await maybe_await(self.fn(*args))


def procedure(fn: ProcedureFn | None = None, *, description: str | None = None) -> Any:
    """Wrap a function as a Procedure; usable bare or as ``@procedure(description=...)``."""
    if fn is None:
        return lambda f: Procedure(f, description=description or inspect.getdoc(f))
    return Procedure(fn, description=description or inspect.getdoc(fn))


RouteNode = Union[Procedure, "Router", Mapping[str, Any], ProcedureFn]


class Router:
    """A tree of procedures and named sub-routers."""

    def __init__(self, routes: Mapping[str, RouteNode] | None = None, **kwargs: RouteNode):
        merged: dict[str, RouteNode] = dict(routes or {})
        merged.update(kwargs)
        self._routes: dict[str, Procedure | Router] = {}
        for name, node in merged.items():
            if not name or "." in name:
                raise ValueError(f"invalid route segment: {name!r}")
            self._routes[name] = self._coerce(name, node)

    @staticmethod
    def _coerce(name: str, node: RouteNode) -> Procedure | Router:
        if isinstance(node, (Procedure, Router)):
            return node
        if isinstance(node, Mapping):
            return Router(node)
        if callable(node):
            return Procedure(node)
        raise TypeError(f"route {name!r} must be a procedure, router or mapping, got {type(node).__name__}")

    @property
    def routes(self) -> Mapping[str, Procedure | Router]:
        return MappingProxyType(self._routes)

    def flat(self) -> FlatRouter:
        """Flatten to an immutable ``dotted.path -> Procedure`` mapping."""
        table: dict[str, Procedure] = {}
        self._flatten_into(table, "")
        return MappingProxyType(table)

    def _flatten_into(self, table: dict[str, Procedure], prefix: str) -> None:
        for name, node in self._routes.items():
            path = f"{prefix}{name}"
            if isinstance(node, Router):
                node._flatten_into(table, f"{path}.")
            else:
                table[path] = node

    def paths(self) -> list[str]:
        return sorted(self.flat())


def router(routes: Mapping[str, RouteNode] | None = None, **kwargs: RouteNode) -> Router:
    """Build a Router: ``router(ping=lambda: "pong", users={"list": list_users})``."""
    return Router(routes, **kwargs)


def ensure_flat(target: Router | FlatRouter) -> FlatRouter:
    """Accept either a Router or an already flattened table."""
    if isinstance(target, Router):
        return target.flat()
    return target
