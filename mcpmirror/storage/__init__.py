"""Relational store for the mirrored registry catalogue."""

from __future__ import annotations

import typing as typ

from .base import Base, UTCDateTime
from .checkpoint import SyncCheckpoint, SyncOutcome
from .errors import TimezoneAwareRequiredError
from .servers import (
    EnvironmentVariableRecord,
    HeaderRecord,
    PackageRecord,
    RemoteRecord,
    RepositoryRecord,
    ServerRecord,
    ServerStatus,
)

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


async def init_storage(engine: AsyncEngine) -> None:
    """Create all tables registered with Base if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = [
    "Base",
    "EnvironmentVariableRecord",
    "HeaderRecord",
    "PackageRecord",
    "RemoteRecord",
    "RepositoryRecord",
    "ServerRecord",
    "ServerStatus",
    "SyncCheckpoint",
    "SyncOutcome",
    "TimezoneAwareRequiredError",
    "UTCDateTime",
    "init_storage",
]
