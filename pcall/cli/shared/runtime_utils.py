"""Helpers for resolving serve targets and checking bind addresses."""

from __future__ import annotations

import errno
import importlib
import socket
import sys
from pathlib import Path
from typing import Any


def load_target(target: str) -> Any:
    """Import ``package.module:attribute`` and return the attribute.

    The current directory is put on ``sys.path`` first so local modules resolve.
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"target must look like 'module:attribute', got {target!r}")
    cwd = str(Path.cwd())
    if cwd not in sys.path:
        sys.path.insert(0, cwd)
    module = importlib.import_module(module_name)
    obj: Any = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise ValueError(f"{module_name!r} has no attribute {attr!r}") from e
    return obj


def is_port_in_use(host: str, port: int) -> bool:
    """True when binding ``host:port`` fails because something already listens there."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                return True
            raise
    return False
