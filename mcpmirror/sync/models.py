"""Data transfer objects for the registry sync engine."""

from __future__ import annotations

import dataclasses
import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt

    from mcpmirror.storage import ServerStatus


@dataclasses.dataclass(slots=True, frozen=True)
class MappedInputField:
    """Environment variable or header ready to be written."""

    name: str
    description: str | None = None
    is_required: bool = False
    is_secret: bool = False
    default: str | None = None
    format: str | None = None
    choices: list[str] | None = None

    def column_values(self) -> dict[str, typ.Any]:
        """Return mutable column values keyed by attribute name."""
        return {
            "description": self.description,
            "is_required": self.is_required,
            "is_secret": self.is_secret,
            "default": self.default,
            "format": self.format,
            "choices": list(self.choices) if self.choices is not None else None,
        }


@dataclasses.dataclass(slots=True, frozen=True)
class MappedRepository:
    """Repository reference for a server."""

    url: str
    source: str = ""
    repo_id: str | None = None
    subfolder: str | None = None


@dataclasses.dataclass(slots=True, frozen=True)
class MappedPackage:
    """Package with a resolved version and its environment variables."""

    registry_type: str
    identifier: str
    version: str
    registry_base_url: str | None = None
    file_sha256: str | None = None
    runtime_hint: str | None = None
    transport: dict[str, typ.Any] = dataclasses.field(default_factory=dict)
    runtime_arguments: list[typ.Any] | None = None
    package_arguments: list[typ.Any] | None = None
    environment_variables: tuple[MappedInputField, ...] = ()


@dataclasses.dataclass(slots=True, frozen=True)
class MappedRemote:
    """Remote endpoint and its headers."""

    type: str
    url: str
    headers: tuple[MappedInputField, ...] = ()


@dataclasses.dataclass(slots=True, frozen=True)
class MappedServer:
    """Local representation of one upstream server version."""

    name: str
    version: str
    description: str
    category: str
    mcp_url: str
    status: ServerStatus
    updated_at: dt.datetime
    mcp_status: str | None = None
    documentation_url: str | None = None
    icon_url: str | None = None
    is_latest: bool = False
    published_at: dt.datetime | None = None
    official_meta: dict[str, typ.Any] | None = None
    publisher_meta: dict[str, typ.Any] | None = None
    repository: MappedRepository | None = None
    packages: tuple[MappedPackage, ...] = ()
    remotes: tuple[MappedRemote, ...] = ()

    @property
    def natural_key(self) -> tuple[str, str]:
        """Return the ``(name, version)`` pair identifying the server row."""
        return (self.name, self.version)


@dataclasses.dataclass(slots=True)
class ReconcileStats:
    """Rows created or updated by the reconciler, per entity kind."""

    servers_created: int = 0
    servers_updated: int = 0
    repositories_written: int = 0
    packages_written: int = 0
    environment_variables_written: int = 0
    remotes_written: int = 0
    headers_written: int = 0

    def absorb(self, other: ReconcileStats) -> None:
        """Add the counters from ``other`` into this instance."""
        for field in dataclasses.fields(self):
            setattr(
                self, field.name, getattr(self, field.name) + getattr(other, field.name)
            )


@dataclasses.dataclass(slots=True)
class SyncResult:
    """Summary of a registry sync run.

    ``updated_since`` is the filter the run sent upstream and ``watermark``
    is the maximum mirrored ``updated_at`` once the run finished.
    """

    job_key: str
    resumed: bool = False
    updated_since: dt.datetime | None = None
    watermark: dt.datetime | None = None
    pages_fetched: int = 0
    records_seen: int = 0
    skipped: int = 0
    malformed: int = 0
    failed: int = 0
    stats: ReconcileStats = dataclasses.field(default_factory=ReconcileStats)

    @property
    def servers_written(self) -> int:
        """Return the number of server rows created or updated."""
        return self.stats.servers_created + self.stats.servers_updated

    def as_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-compatible summary."""
        return {
            "job_key": self.job_key,
            "resumed": self.resumed,
            "updated_since": (
                self.updated_since.isoformat() if self.updated_since else None
            ),
            "watermark": self.watermark.isoformat() if self.watermark else None,
            "pages_fetched": self.pages_fetched,
            "records_seen": self.records_seen,
            "skipped": self.skipped,
            "malformed": self.malformed,
            "failed": self.failed,
            **dataclasses.asdict(self.stats),
        }
