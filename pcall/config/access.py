"""Process-wide config access.

A loaded ``Config`` depends on two inputs: the JSON file and the
``PCALL_*`` environment variables layered over it by pydantic-settings.
Both are part of the cache key, so exporting ``PCALL_SERVER__PORT`` (or
editing the file through ``save_config``) yields a fresh load on the next
``get_config`` call.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path

from pcall.config.loader import get_config_path, load_config
from pcall.config.schema import ENV_PREFIX, Config

EnvOverrides = tuple[tuple[str, str], ...]

_lock = threading.RLock()
_cache: dict[str, tuple[EnvOverrides, Config]] = {}


def _resolve(config_path: Path | None) -> str:
    return str(Path(config_path or get_config_path()).expanduser().resolve())


def env_overrides() -> EnvOverrides:
    """The ``PCALL_*`` variables currently set, in a stable order."""
    return tuple(sorted((k, v) for k, v in os.environ.items() if k.upper().startswith(ENV_PREFIX)))


def get_config(*, config_path: Path | None = None, force_reload: bool = False) -> Config:
    """Load once per file; reload when forced or when the PCALL_ environment changed."""
    key = _resolve(config_path)
    env = env_overrides()
    with _lock:
        cached = _cache.get(key)
        if force_reload or cached is None or cached[0] != env:
            cached = (env, load_config(Path(key)))
            _cache[key] = cached
        return cached[1]


def clear_config_cache(*, config_path: Path | None = None) -> None:
    """Forget one file's config, or every cached config when no path is given."""
    with _lock:
        if config_path is None:
            _cache.clear()
            return
        _cache.pop(_resolve(config_path), None)
