"""Unit tests for mcpmirror.api.middleware.StorageLifecycle."""

from __future__ import annotations

from unittest import mock

import pytest
from sqlalchemy.exc import OperationalError

from mcpmirror.api import middleware as middleware_module
from mcpmirror.api.middleware import StorageLifecycle


@pytest.fixture
def engine() -> mock.MagicMock:
    """Provide a mock engine with an awaitable dispose."""
    engine = mock.MagicMock()
    engine.dispose = mock.AsyncMock()
    engine.url.render_as_string.return_value = "sqlite+aiosqlite:///mirror.db"
    return engine


@pytest.fixture
def init_storage(monkeypatch: pytest.MonkeyPatch) -> mock.AsyncMock:
    """Replace table creation with a recorder."""
    recorder = mock.AsyncMock()
    monkeypatch.setattr(middleware_module, "init_storage", recorder)
    return recorder


class TestStartup:
    """Table creation on ASGI startup."""

    @pytest.mark.asyncio
    async def test_startup_creates_tables(
        self, engine: mock.MagicMock, init_storage: mock.AsyncMock
    ) -> None:
        """process_startup initialises the store with the owned engine."""
        await StorageLifecycle(engine).process_startup({}, {})

        init_storage.assert_awaited_once_with(engine)

    @pytest.mark.asyncio
    async def test_startup_failure_propagates(
        self, engine: mock.MagicMock, init_storage: mock.AsyncMock
    ) -> None:
        """A database error aborts startup instead of serving a broken app."""
        init_storage.side_effect = OperationalError("CREATE", {}, Exception("down"))

        with pytest.raises(OperationalError):
            await StorageLifecycle(engine).process_startup({}, {})


class TestShutdown:
    """Resource release on ASGI shutdown."""

    @pytest.mark.asyncio
    async def test_shutdown_closes_client_and_engine(
        self, engine: mock.MagicMock
    ) -> None:
        """The registry client is closed and the pool disposed."""
        client = mock.MagicMock()
        client.aclose = mock.AsyncMock()

        await StorageLifecycle(engine, client).process_shutdown({}, {})

        client.aclose.assert_awaited_once()
        engine.dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_shutdown_without_client(self, engine: mock.MagicMock) -> None:
        """An app without a registry client still disposes the engine."""
        await StorageLifecycle(engine).process_shutdown({}, {})

        engine.dispose.assert_awaited_once()
