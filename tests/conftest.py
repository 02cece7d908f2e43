"""
Shared pytest fixtures for JellyScan tests.

Provides reusable fixtures for:
- A scriptable in-memory Jellyfin client (FakeJellyfinClient) for tier tests
- A sample library and a recording sleep replacement

Builders used directly by tests live in tests/factories.py.
All async tests require @pytest.mark.asyncio (asyncio_mode = strict).
"""

import logging

import pytest

from factories import FakeJellyfinClient, make_library


@pytest.fixture
def fake_client():
    """Scriptable FakeJellyfinClient; defaults to a server without the scan plugin."""
    return FakeJellyfinClient()


@pytest.fixture
def movies_library():
    return make_library()


@pytest.fixture
def no_sleep():
    """Recording replacement for asyncio.sleep between retry rounds."""
    delays: list[float] = []

    async def _sleep(delay: float) -> None:
        delays.append(delay)

    _sleep.delays = delays
    return _sleep


@pytest.fixture(autouse=True)
def _reset_root_logging():
    """Undo handlers installed by configure_logging() so caplog keeps working."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
