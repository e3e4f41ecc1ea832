"""Errors specific to registry synchronisation."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt


class SyncError(RuntimeError):
    """Raised when a sync run is aborted.

    Only the message string is surfaced to HTTP callers; the underlying
    cause stays reachable through ``__cause__``.
    """

    @classmethod
    def wrap(cls, exc: BaseException) -> SyncError:
        """Return a run-level error describing ``exc``."""
        return cls(f"{type(exc).__name__}: {exc}")


class SyncInProgressError(SyncError):
    """Raised when another run already holds the sync lease."""

    def __init__(self, job_key: str) -> None:
        """Initialise with the contended job key."""
        self.job_key = job_key
        super().__init__(f"Sync job {job_key!r} is already running")


class SyncDeadlineExceededError(SyncError):
    """Raised when a run exceeds its configured deadline."""

    def __init__(self, timeout: dt.timedelta) -> None:
        """Initialise with the deadline that was exceeded."""
        self.timeout = timeout
        super().__init__(
            f"Sync run exceeded its deadline of {timeout.total_seconds():.0f}s"
        )


class StalledPaginationError(SyncError):
    """Raised when the registry hands back the cursor that was just requested."""

    def __init__(self, cursor: str) -> None:
        """Initialise with the repeated cursor."""
        self.cursor = cursor
        super().__init__(f"Registry pagination stalled at cursor {cursor!r}")


class RecordError(Exception):
    """Base class for failures confined to one upstream record."""


class MalformedRecordError(RecordError):
    """Raised when an upstream record cannot be mapped to the local schema."""

    def __init__(self, name: str | None, reason: str) -> None:
        """Initialise with the record name (if known) and the reason."""
        self.name = name
        self.reason = reason
        super().__init__(f"Malformed registry record {name or '<unnamed>'}: {reason}")


class UpsertError(RecordError):
    """Raised when writing one server and its children to the store fails."""

    def __init__(self, name: str, version: str, reason: str) -> None:
        """Initialise with the server natural key and failure reason."""
        self.name = name
        self.version = version
        self.reason = reason
        super().__init__(f"Failed to upsert {name}@{version}: {reason}")
