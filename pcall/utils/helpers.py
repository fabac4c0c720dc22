"""Small helpers shared across pcall modules."""

from __future__ import annotations

import inspect
from pathlib import Path
from typing import Any


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it unchanged."""
    return await value if inspect.isawaitable(value) else value


def get_data_path() -> Path:
    """~/.pcall, created on demand."""
    path = Path.home() / ".pcall"
    path.mkdir(parents=True, exist_ok=True)
    return path
