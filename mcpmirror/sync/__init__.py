"""Incremental sync of the upstream MCP registry into the local store.

Public API
----------
SyncService
    Orchestrator that pages through the registry and reconciles each entry.
SyncConfig
    Job key, deadline and watermark overlap for a sync job.
SyncResult
    Counters and watermark describing a finished run.
SyncError
    Raised when a run is aborted; ``SyncInProgressError`` when another run
    holds the lease.
map_server
    Pure projection of an upstream entry onto the local schema.

Example:
Run a sync pass against an existing store:

>>> from mcpmirror.sync import SyncService
>>> from mcpmirror.upstream import RegistryClient
>>>
>>> async with RegistryClient() as client:
...     service = SyncService(session_factory, client)
...     result = await service.run_sync()

"""

from mcpmirror.sync.config import SyncConfig
from mcpmirror.sync.errors import (
    MalformedRecordError,
    RecordError,
    StalledPaginationError,
    SyncDeadlineExceededError,
    SyncError,
    SyncInProgressError,
    UpsertError,
)
from mcpmirror.sync.mapping import map_server
from mcpmirror.sync.models import (
    MappedInputField,
    MappedPackage,
    MappedRemote,
    MappedRepository,
    MappedServer,
    ReconcileStats,
    SyncResult,
)
from mcpmirror.sync.reconcile import Reconciler
from mcpmirror.sync.service import SyncService
from mcpmirror.sync.watermark import (
    compute_watermark,
    latest_updated_at,
    latest_versions,
    updated_since,
)

__all__ = [
    "MalformedRecordError",
    "MappedInputField",
    "MappedPackage",
    "MappedRemote",
    "MappedRepository",
    "MappedServer",
    "ReconcileStats",
    "Reconciler",
    "RecordError",
    "StalledPaginationError",
    "SyncConfig",
    "SyncDeadlineExceededError",
    "SyncError",
    "SyncInProgressError",
    "SyncResult",
    "SyncService",
    "UpsertError",
    "compute_watermark",
    "latest_updated_at",
    "latest_versions",
    "map_server",
    "updated_since",
]
