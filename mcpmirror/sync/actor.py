"""Dramatiq actor for scheduled registry sync runs.

Usage
-----
Queue a sync run against a database:

>>> sync_registry_job.send(database_url="postgresql+asyncpg://...")

Each invocation performs one full ``run_sync()`` pass. Engines and session
factories are cached per database URL and reused across invocations.
"""

from __future__ import annotations

import asyncio
import threading
import typing as typ

import dramatiq
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from mcpmirror.storage import init_storage
from mcpmirror.sync._broker import ensure_broker_configured
from mcpmirror.sync.config import SyncConfig
from mcpmirror.sync.service import SyncService
from mcpmirror.upstream import RegistryClient, RegistryClientConfig

type SessionFactory = async_sessionmaker[AsyncSession]

_ENGINE_CACHE: dict[str, AsyncEngine] = {}
_SESSION_FACTORY_CACHE: dict[str, SessionFactory] = {}
_CACHE_LOCK = threading.Lock()

# The actor decorator resolves the global broker at import time.
ensure_broker_configured()


def _get_or_create_session_factory(database_url: str) -> SessionFactory:
    """Return the cached session factory for *database_url*.

    Thread-safe: Dramatiq runs actors on several worker threads.
    """
    with _CACHE_LOCK:
        if database_url not in _SESSION_FACTORY_CACHE:
            engine = create_async_engine(database_url)
            _ENGINE_CACHE[database_url] = engine
            _SESSION_FACTORY_CACHE[database_url] = async_sessionmaker(
                engine, expire_on_commit=False
            )
        return _SESSION_FACTORY_CACHE[database_url]


async def _run_sync_async(
    database_url: str,
    *,
    client: RegistryClient | None = None,
    config: SyncConfig | None = None,
) -> dict[str, typ.Any]:
    """Run one sync pass against ``database_url`` and summarise it."""
    session_factory = _get_or_create_session_factory(database_url)
    await init_storage(_ENGINE_CACHE[database_url])

    owned_client = client is None
    registry_client = client or RegistryClient(RegistryClientConfig.from_env())
    try:
        service = SyncService(
            session_factory, registry_client, config=config or SyncConfig.from_env()
        )
        result = await service.run_sync()
    finally:
        if owned_client:
            await registry_client.aclose()
    return result.as_dict()


@dramatiq.actor(max_retries=0)
def sync_registry_job(database_url: str) -> dict[str, typ.Any]:
    """Mirror the upstream registry into the database at ``database_url``.

    Parameters
    ----------
    database_url
        SQLAlchemy async URL of the local store.

    Returns
    -------
    dict[str, Any]
        JSON-compatible summary of the run.

    Raises
    ------
    SyncError
        If the run is aborted. Dramatiq retries are disabled because the next
        scheduled run resumes from the stored checkpoint.

    """
    ensure_broker_configured()
    return asyncio.run(_run_sync_async(database_url))
