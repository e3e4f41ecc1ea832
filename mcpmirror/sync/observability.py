"""Structured log events for registry sync runs.

Events are emitted as ``[event] key=value`` messages through femtologging so
log aggregators can parse run health, page throughput and per-record
failures without a metrics backend.
"""

from __future__ import annotations

import enum
import typing as typ

from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from mcpmirror.logging import get_logger, log_error, log_info, log_warning
from mcpmirror.upstream.errors import FetchError

from .errors import (
    MalformedRecordError,
    StalledPaginationError,
    SyncDeadlineExceededError,
    SyncInProgressError,
    UpsertError,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from .models import SyncResult

logger = get_logger(__name__)

_HTTP_SERVER_ERROR_THRESHOLD = 500
_HTTP_RATE_LIMITED = 429


class SyncEventType(enum.StrEnum):
    """Structured log event types for sync observability."""

    RUN_STARTED = "sync.run.started"
    RUN_COMPLETED = "sync.run.completed"
    RUN_FAILED = "sync.run.failed"
    PAGE_FETCHED = "sync.page.fetched"
    RECORD_SKIPPED = "sync.record.skipped"
    RECORD_MALFORMED = "sync.record.malformed"
    RECORD_FAILED = "sync.record.failed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    SCHEMA_DRIFT = "schema_drift"
    CONCURRENCY = "concurrency"
    TIMEOUT = "timeout"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATA_INTEGRITY = "data_integrity"
    DATABASE_ERROR = "database_error"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (MalformedRecordError, ErrorCategory.SCHEMA_DRIFT),
    (StalledPaginationError, ErrorCategory.SCHEMA_DRIFT),
    (SyncInProgressError, ErrorCategory.CONCURRENCY),
    (SyncDeadlineExceededError, ErrorCategory.TIMEOUT),
    (TimeoutError, ErrorCategory.TIMEOUT),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (IntegrityError, ErrorCategory.DATA_INTEGRITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes.

    Wrapped errors are classified by their ``__cause__`` so a ``SyncError``
    raised from a ``FetchError`` reports the fetch failure's category.
    """
    if isinstance(exc, FetchError):
        if exc.status_code is None or exc.status_code == _HTTP_RATE_LIMITED:
            return ErrorCategory.TRANSIENT
        if exc.status_code >= _HTTP_SERVER_ERROR_THRESHOLD:
            return ErrorCategory.TRANSIENT
        return ErrorCategory.CLIENT_ERROR

    if isinstance(exc, UpsertError) and exc.__cause__ is not None:
        return categorize_error(exc.__cause__)

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    if exc.__cause__ is not None:
        return categorize_error(exc.__cause__)
    return ErrorCategory.UNKNOWN


class SyncEventLogger:
    """Emit structured sync events via femtologging.

    INFO for run and page progress, WARNING for records that were skipped
    as malformed or failed to upsert, ERROR for aborted runs.
    """

    def log_run_started(
        self,
        *,
        job_key: str,
        updated_since: dt.datetime | None,
        resume_cursor: str | None,
    ) -> None:
        """Log the start of a run with its fetch boundary."""
        log_info(
            logger,
            "[%s] job_key=%s updated_since=%s resume_cursor=%s",
            SyncEventType.RUN_STARTED,
            job_key,
            updated_since.isoformat() if updated_since else None,
            resume_cursor,
        )

    def log_page_fetched(
        self, *, job_key: str, page: int, records: int, next_cursor: str | None
    ) -> None:
        """Log one fetched page."""
        log_info(
            logger,
            "[%s] job_key=%s page=%d records=%d has_next=%s",
            SyncEventType.PAGE_FETCHED,
            job_key,
            page,
            records,
            next_cursor is not None,
        )

    def log_record_skipped(self, *, job_key: str, name: str) -> None:
        """Log an entry with no packages or remotes."""
        log_info(
            logger,
            "[%s] job_key=%s name=%s reason=no_installation_method",
            SyncEventType.RECORD_SKIPPED,
            job_key,
            name,
        )

    def log_record_malformed(
        self, *, job_key: str, name: str | None, reason: str
    ) -> None:
        """Log an entry that could not be decoded or mapped."""
        log_warning(
            logger,
            "[%s] job_key=%s name=%s reason=%s",
            SyncEventType.RECORD_MALFORMED,
            job_key,
            name,
            reason,
        )

    def log_record_failed(self, *, job_key: str, error: UpsertError) -> None:
        """Log a server whose upsert was rolled back."""
        log_warning(
            logger,
            "[%s] job_key=%s name=%s version=%s error_category=%s error=%s",
            SyncEventType.RECORD_FAILED,
            job_key,
            error.name,
            error.version,
            categorize_error(error),
            error.reason,
            exc_info=error,
        )

    def log_run_completed(self, result: SyncResult, duration: dt.timedelta) -> None:
        """Log a finished run with its counters."""
        log_info(
            logger,
            "[%s] job_key=%s duration_seconds=%.3f pages=%d records=%d "
            "created=%d updated=%d skipped=%d malformed=%d failed=%d watermark=%s",
            SyncEventType.RUN_COMPLETED,
            result.job_key,
            duration.total_seconds(),
            result.pages_fetched,
            result.records_seen,
            result.stats.servers_created,
            result.stats.servers_updated,
            result.skipped,
            result.malformed,
            result.failed,
            result.watermark.isoformat() if result.watermark else None,
        )

    def log_run_failed(
        self, *, job_key: str, error: BaseException, duration: dt.timedelta
    ) -> None:
        """Log an aborted run."""
        log_error(
            logger,
            "[%s] job_key=%s duration_seconds=%.3f error_category=%s "
            "error_type=%s error_message=%s",
            SyncEventType.RUN_FAILED,
            job_key,
            duration.total_seconds(),
            categorize_error(error),
            type(error).__name__,
            str(error),
            exc_info=error,
        )
