"""Natural-key upserts across the mirrored server graph.

Every level follows the same steps: look the row up by its natural key,
overwrite all mutable columns when it exists or insert a fresh row when it
does not, flush so the row has an identifier, then descend into the child
collections with that identifier. Errors are not handled here; the caller
owns the transaction and decides what a failure means for the run.
"""

from __future__ import annotations

import typing as typ

from sqlalchemy import select

from mcpmirror.common.time import utcnow
from mcpmirror.storage import (
    Base,
    EnvironmentVariableRecord,
    HeaderRecord,
    PackageRecord,
    RemoteRecord,
    RepositoryRecord,
    ServerRecord,
)
from mcpmirror.sync.models import ReconcileStats

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from mcpmirror.sync.models import (
        MappedInputField,
        MappedPackage,
        MappedRemote,
        MappedRepository,
        MappedServer,
    )


async def _upsert_row[RowT: Base](
    session: AsyncSession,
    model: type[RowT],
    key: dict[str, typ.Any],
    values: dict[str, typ.Any],
) -> tuple[RowT, bool]:
    """Find ``model`` by ``key`` and overwrite ``values``, inserting if absent.

    Returns the row and whether it was created.
    """
    query = select(model).where(
        *(getattr(model, column) == value for column, value in key.items())
    )
    row = await session.scalar(query)
    created = row is None
    if row is None:
        row = model(**key, **values)
        session.add(row)
    else:
        for column, value in values.items():
            setattr(row, column, value)
    await session.flush()
    return row, created


class Reconciler:
    """Write mapped servers and their children through one session.

    Parameters
    ----------
    session
        Session whose transaction scopes the writes; the reconciler never
        commits or rolls back.
    stats
        Counters updated as rows are written.

    """

    def __init__(
        self, session: AsyncSession, stats: ReconcileStats | None = None
    ) -> None:
        """Bind the reconciler to a session and optional counters."""
        self._session = session
        self.stats = stats if stats is not None else ReconcileStats()

    async def upsert_server(self, mapped: MappedServer) -> ServerRecord:
        """Upsert a server by ``(name, version)`` and cascade to its children."""
        values = {
            "description": mapped.description,
            "category": mapped.category,
            "mcp_url": mapped.mcp_url,
            "documentation_url": mapped.documentation_url,
            "icon_url": mapped.icon_url,
            "status": mapped.status,
            "mcp_status": mapped.mcp_status,
            "is_official": True,
            "is_latest": mapped.is_latest,
            "published_at": mapped.published_at,
            "official_meta": mapped.official_meta,
            "publisher_meta": mapped.publisher_meta,
            "updated_at": mapped.updated_at,
            "last_synced_at": utcnow(),
        }
        server, created = await _upsert_row(
            self._session,
            ServerRecord,
            {"name": mapped.name, "version": mapped.version},
            values,
        )
        if created:
            self.stats.servers_created += 1
        else:
            self.stats.servers_updated += 1

        if mapped.repository is not None:
            await self.upsert_repository(mapped.repository, server.id)
        for package in mapped.packages:
            await self.upsert_package(package, server.id)
        for remote in mapped.remotes:
            await self.upsert_remote(remote, server.id)
        return server

    async def upsert_repository(
        self, mapped: MappedRepository, server_id: str
    ) -> RepositoryRecord:
        """Upsert the single repository row owned by ``server_id``."""
        row, _ = await _upsert_row(
            self._session,
            RepositoryRecord,
            {"server_id": server_id},
            {
                "url": mapped.url,
                "source": mapped.source,
                "repo_id": mapped.repo_id,
                "subfolder": mapped.subfolder,
            },
        )
        self.stats.repositories_written += 1
        return row

    async def upsert_package(
        self, mapped: MappedPackage, server_id: str
    ) -> PackageRecord:
        """Upsert a package and its environment variables."""
        row, _ = await _upsert_row(
            self._session,
            PackageRecord,
            {
                "server_id": server_id,
                "registry_type": mapped.registry_type,
                "identifier": mapped.identifier,
                "version": mapped.version,
            },
            {
                "registry_base_url": mapped.registry_base_url,
                "file_sha256": mapped.file_sha256,
                "runtime_hint": mapped.runtime_hint,
                "transport": dict(mapped.transport),
                "runtime_arguments": mapped.runtime_arguments,
                "package_arguments": mapped.package_arguments,
            },
        )
        self.stats.packages_written += 1
        for env in mapped.environment_variables:
            await self.upsert_environment_variable(env, row.id)
        return row

    async def upsert_environment_variable(
        self, mapped: MappedInputField, package_id: str
    ) -> EnvironmentVariableRecord:
        """Upsert an environment variable keyed by ``(package_id, name)``."""
        row, _ = await _upsert_row(
            self._session,
            EnvironmentVariableRecord,
            {"package_id": package_id, "name": mapped.name},
            mapped.column_values(),
        )
        self.stats.environment_variables_written += 1
        return row

    async def upsert_remote(self, mapped: MappedRemote, server_id: str) -> RemoteRecord:
        """Upsert a remote keyed by ``(server_id, type, url)`` and its headers."""
        row, _ = await _upsert_row(
            self._session,
            RemoteRecord,
            {"server_id": server_id, "type": mapped.type, "url": mapped.url},
            {},
        )
        self.stats.remotes_written += 1
        for header in mapped.headers:
            await self.upsert_header(header, row.id)
        return row

    async def upsert_header(
        self, mapped: MappedInputField, remote_id: str
    ) -> HeaderRecord:
        """Upsert a header keyed by ``(remote_id, name)``."""
        row, _ = await _upsert_row(
            self._session,
            HeaderRecord,
            {"remote_id": remote_id, "name": mapped.name},
            mapped.column_values(),
        )
        self.stats.headers_written += 1
        return row
