"""Unit tests for the Dramatiq sync actor."""

from __future__ import annotations

import typing as typ

import dramatiq
import pytest
import pytest_asyncio

from mcpmirror.sync import actor as actor_module
from mcpmirror.sync._broker import (
    ALLOW_STUB_BROKER_ENV,
    ensure_broker_configured,
    stub_broker_allowed,
)
from mcpmirror.sync.config import SyncConfig
from tests.helpers.registry_payloads import FakeCatalogue, server_entry

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path


@pytest_asyncio.fixture
async def database_url(tmp_path: Path) -> cabc.AsyncIterator[str]:
    """Yield a SQLite URL and drop the cached engine afterwards."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'actor.db'}"
    yield url
    actor_module._SESSION_FACTORY_CACHE.pop(url, None)
    engine = actor_module._ENGINE_CACHE.pop(url, None)
    if engine is not None:
        await engine.dispose()


class TestSyncRegistryJob:
    """Tests for sync_registry_job."""

    def test_actor_is_registered_with_a_broker(self) -> None:
        """Importing the module registers the actor on the global broker."""
        broker = dramatiq.get_broker()
        assert "sync_registry_job" in broker.get_declared_actors()

    @pytest.mark.asyncio
    async def test_run_returns_summary(self, database_url: str) -> None:
        """One pass initialises the store and reports its counters."""
        catalogue = FakeCatalogue(
            [server_entry("io.example/a"), server_entry("io.example/b")]
        )

        summary = await actor_module._run_sync_async(
            database_url,
            client=typ.cast("typ.Any", catalogue),
            config=SyncConfig(),
        )

        assert summary["job_key"] == "registry"
        assert summary["servers_created"] == 2
        assert summary["pages_fetched"] == 1

    @pytest.mark.asyncio
    async def test_session_factory_is_cached(self, database_url: str) -> None:
        """Repeated runs reuse one engine per database URL."""
        first = actor_module._get_or_create_session_factory(database_url)
        second = actor_module._get_or_create_session_factory(database_url)
        assert first is second


class TestStubBrokerAllowed:
    """Tests for the in-memory broker fallback rule."""

    @pytest.mark.parametrize("value", ["1", "true", "YES", " on "])
    def test_env_flag_allows_stub(self, value: str) -> None:
        """A truthy flag allows the stub outside pytest."""
        assert stub_broker_allowed({ALLOW_STUB_BROKER_ENV: value}, modules={})

    def test_production_context_refuses_stub(self) -> None:
        """Without the flag or pytest a real broker is required."""
        assert not stub_broker_allowed({ALLOW_STUB_BROKER_ENV: "0"}, modules={})

    def test_pytest_allows_stub(self) -> None:
        """Test runs fall back to the stub broker."""
        assert stub_broker_allowed({}, modules={"pytest": object()})
        assert stub_broker_allowed({"PYTEST_XDIST_WORKER": "gw0"}, modules={})

    def test_ensure_broker_configured_returns_actor_broker(self) -> None:
        """The resolved broker is the one the actor was declared on."""
        broker = ensure_broker_configured()

        assert broker is dramatiq.get_broker()
        assert "sync_registry_job" in broker.get_declared_actors()
