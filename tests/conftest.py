"""Pytest hooks and fixtures."""

import os
import sys

import pytest
from loguru import logger

from pcall.config.access import clear_config_cache


def pytest_configure(config):
    """Register custom markers (also in pyproject.toml)."""
    config.addinivalue_line(
        "markers",
        "network: opens real sockets on localhost (skipped in CI)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip network tests when running in CI (no free ports guaranteed)."""
    if os.environ.get("CI") != "true":
        return
    skip = pytest.mark.skip(reason="Opens real sockets (skipped in CI)")
    for item in items:
        if "network" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(autouse=True)
def _isolated_state():
    """Config cache and loguru sinks are process-global; reset them per test."""
    clear_config_cache()
    yield
    clear_config_cache()
    # CLI commands replace the stderr sink with the runner's stream.
    logger.remove()
    logger.add(sys.stderr)
    logger.enable("pcall")


@pytest.fixture
def fake_home(tmp_path, monkeypatch):
    """Point ~ at a temp dir so ~/.pcall never touches the real home."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home
