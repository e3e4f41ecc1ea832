"""Registry sync orchestrator.

A run reads the watermark, then pages through the upstream catalogue until
the registry stops returning a cursor, mapping and reconciling each entry in
its own transaction:

- a page that cannot be fetched aborts the run; pages already processed stay
  applied and the checkpoint remembers the cursor to resume from;
- an entry that cannot be mapped is logged and skipped;
- an entry whose upsert fails is rolled back, logged and skipped, and its
  ``updatedAt`` lowers the retry floor so the next run fetches it again.
"""

from __future__ import annotations

import asyncio
import dataclasses
import typing as typ

from sqlalchemy.exc import SQLAlchemyError

from mcpmirror.common.time import utcnow
from mcpmirror.logging import get_logger, log_exception, log_warning
from mcpmirror.upstream.errors import FetchError

from .checkpoints import (
    CheckpointState,
    earliest,
    load_checkpoint,
    record_completed,
    record_failed,
)
from .config import SyncConfig
from .errors import (
    MalformedRecordError,
    StalledPaginationError,
    SyncDeadlineExceededError,
    SyncError,
    SyncInProgressError,
    UpsertError,
)
from .lease import SyncLease
from .mapping import map_server
from .models import ReconcileStats, SyncResult
from .observability import SyncEventLogger
from .reconcile import Reconciler
from .watermark import compute_watermark, latest_updated_at, updated_since

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from mcpmirror.sync.models import MappedServer
    from mcpmirror.upstream.client import CatalogueClient
    from mcpmirror.upstream.models import UpstreamPage, UpstreamServer

    type SessionFactory = async_sessionmaker[AsyncSession]

logger = get_logger(__name__)

_HTTP_CLIENT_ERROR_THRESHOLD = 400
_HTTP_SERVER_ERROR_THRESHOLD = 500
_HTTP_RATE_LIMITED = 429


@dataclasses.dataclass(slots=True)
class _RunProgress:
    """Mutable position of a run within the upstream catalogue."""

    cursor: str | None
    since: dt.datetime | None
    resumed: bool
    # Start of the pass this run belongs to; a resumed run inherits it.
    pass_started_at: dt.datetime
    # Set when the run starts from the first page, which refetches every
    # entry at or above the stored retry floor.
    covers_retry_floor: bool
    failed_floor: dt.datetime | None = None


def _is_stale_cursor_error(exc: FetchError) -> bool:
    status = exc.status_code
    return (
        status is not None
        and _HTTP_CLIENT_ERROR_THRESHOLD <= status < _HTTP_SERVER_ERROR_THRESHOLD
        and status != _HTTP_RATE_LIMITED
    )


class SyncService:
    """Mirror the upstream registry catalogue into the local store.

    Parameters
    ----------
    session_factory
        Factory for sessions against the local store. Each entry is written
        in its own session and transaction.
    client
        Catalogue client used to page through the registry.
    config
        Sync job configuration.
    event_logger
        Structured event sink; defaults to :class:`SyncEventLogger`.

    """

    def __init__(
        self,
        session_factory: SessionFactory,
        client: CatalogueClient,
        *,
        config: SyncConfig | None = None,
        event_logger: SyncEventLogger | None = None,
    ) -> None:
        """Create a service bound to a store and a catalogue client."""
        self._session_factory = session_factory
        self._client = client
        self._config = config or SyncConfig()
        self._event_logger = event_logger or SyncEventLogger()
        self._run_lock = asyncio.Lock()

    @property
    def config(self) -> SyncConfig:
        """Return the job configuration."""
        return self._config

    async def run_sync(self) -> SyncResult:
        """Run one sync pass to completion.

        Returns
        -------
        SyncResult
            Counters describing the pass.

        Raises
        ------
        SyncInProgressError
            If a run of the same job is already active in this process or
            holds the database lease.
        SyncError
            If the run was aborted; the triggering error is chained as
            ``__cause__``.

        """
        if self._run_lock.locked():
            raise SyncInProgressError(self._config.job_key)

        async with self._run_lock:
            lease = SyncLease(
                self._session_factory, self._config.job_key, self._config.lease_ttl
            )
            try:
                await lease.acquire()
            except SQLAlchemyError as exc:
                raise SyncError.wrap(exc) from exc
            try:
                return await self._run()
            finally:
                await self._release(lease)

    async def _release(self, lease: SyncLease) -> None:
        try:
            await lease.release()
        except SQLAlchemyError as exc:
            # The lease expires on its own; the run outcome is already recorded.
            log_exception(
                logger, f"Could not release lease for {self._config.job_key}", exc
            )

    async def _run(self) -> SyncResult:
        started_at = utcnow()
        try:
            state = await load_checkpoint(self._session_factory, self._config.job_key)
            progress = await self._start_position(state, started_at)
        except SQLAlchemyError as exc:
            self._event_logger.log_run_failed(
                job_key=self._config.job_key, error=exc, duration=utcnow() - started_at
            )
            raise SyncError.wrap(exc) from exc

        result = SyncResult(
            job_key=self._config.job_key,
            resumed=progress.resumed,
            updated_since=progress.since,
        )
        self._event_logger.log_run_started(
            job_key=self._config.job_key,
            updated_since=progress.since,
            resume_cursor=progress.cursor,
        )

        deadline = asyncio.timeout(self._config.run_timeout.total_seconds())
        try:
            async with deadline:
                await self._page_loop(progress, result)
        except BaseException as exc:
            if deadline.expired():
                error: SyncError = SyncDeadlineExceededError(self._config.run_timeout)
            elif isinstance(exc, SyncError):
                error = exc
            else:
                error = SyncError.wrap(exc)
            await self._fail(progress, state, error, exc, started_at)
            if not isinstance(exc, Exception) or error is exc:
                raise
            raise error from exc

        await self._complete(progress, state, result, started_at)
        return result

    async def _start_position(
        self, state: CheckpointState, started_at: dt.datetime
    ) -> _RunProgress:
        """Resume an interrupted run or compute a fresh watermark."""
        if state.resume_pending:
            return _RunProgress(
                cursor=state.resume_cursor,
                since=state.resume_since,
                resumed=True,
                pass_started_at=state.pass_started_at or started_at,
                covers_retry_floor=state.resume_cursor is None,
            )

        async with self._session_factory() as session:
            latest = await latest_updated_at(session)
        watermark = compute_watermark(
            latest, state.retry_floor, state.synced_through or started_at
        )
        return _RunProgress(
            cursor=None,
            since=updated_since(watermark, self._config.watermark_overlap),
            resumed=False,
            pass_started_at=started_at,
            covers_retry_floor=True,
        )

    async def _fetch(
        self, progress: _RunProgress, result: SyncResult
    ) -> UpstreamPage:
        try:
            return await self._client.fetch_page(
                progress.cursor, progress.since, self._config.page_limit
            )
        except FetchError as exc:
            # A stored cursor can go stale between runs; restart the resumed
            # pass from the first page with the same filter.
            if not (
                progress.resumed
                and progress.cursor is not None
                and result.pages_fetched == 0
                and _is_stale_cursor_error(exc)
            ):
                raise
            log_warning(
                logger,
                "Resume cursor for %s rejected (%s); restarting from first page",
                self._config.job_key,
                exc,
            )
            progress.cursor = None
            progress.covers_retry_floor = True
            return await self._client.fetch_page(
                None, progress.since, self._config.page_limit
            )

    async def _page_loop(self, progress: _RunProgress, result: SyncResult) -> None:
        while True:
            page = await self._fetch(progress, result)
            result.pages_fetched += 1
            self._event_logger.log_page_fetched(
                job_key=self._config.job_key,
                page=result.pages_fetched,
                records=len(page.servers) + len(page.rejected),
                next_cursor=page.next_cursor,
            )

            for rejected in page.rejected:
                result.records_seen += 1
                result.malformed += 1
                self._event_logger.log_record_malformed(
                    job_key=self._config.job_key,
                    name=rejected.name,
                    reason=rejected.reason,
                )
            for upstream in page.servers:
                await self._process_record(upstream, progress, result)

            next_cursor = page.next_cursor
            if next_cursor is None:
                return
            if next_cursor == progress.cursor:
                raise StalledPaginationError(next_cursor)
            progress.cursor = next_cursor

    async def _process_record(
        self,
        upstream: UpstreamServer,
        progress: _RunProgress,
        result: SyncResult,
    ) -> None:
        result.records_seen += 1
        try:
            mapped = map_server(upstream)
        except MalformedRecordError as exc:
            result.malformed += 1
            self._event_logger.log_record_malformed(
                job_key=self._config.job_key, name=exc.name, reason=exc.reason
            )
            return

        if mapped is None:
            result.skipped += 1
            self._event_logger.log_record_skipped(
                job_key=self._config.job_key, name=upstream.server.name
            )
            return

        stats = ReconcileStats()
        try:
            await self._reconcile(mapped, stats)
        except UpsertError as exc:
            result.failed += 1
            progress.failed_floor = earliest(progress.failed_floor, mapped.updated_at)
            self._event_logger.log_record_failed(
                job_key=self._config.job_key, error=exc
            )
            return
        result.stats.absorb(stats)

    async def _reconcile(self, mapped: MappedServer, stats: ReconcileStats) -> None:
        """Write one server graph in a single transaction.

        Raises
        ------
        UpsertError
            If any write fails; the transaction is rolled back.

        """
        try:
            async with self._session_factory() as session, session.begin():
                await Reconciler(session, stats).upsert_server(mapped)
        except (SQLAlchemyError, ValueError) as exc:
            raise UpsertError(mapped.name, mapped.version, str(exc)) from exc

    async def _complete(
        self,
        progress: _RunProgress,
        state: CheckpointState,
        result: SyncResult,
        started_at: dt.datetime,
    ) -> None:
        carried_floor = None if progress.covers_retry_floor else state.retry_floor
        try:
            async with self._session_factory() as session:
                result.watermark = await latest_updated_at(session)
            await record_completed(
                self._session_factory,
                self._config.job_key,
                retry_floor=earliest(progress.failed_floor, carried_floor),
                pass_started_at=progress.pass_started_at,
            )
        except SQLAlchemyError as exc:
            self._event_logger.log_run_failed(
                job_key=self._config.job_key, error=exc, duration=utcnow() - started_at
            )
            raise SyncError.wrap(exc) from exc
        self._event_logger.log_run_completed(result, utcnow() - started_at)

    async def _fail(
        self,
        progress: _RunProgress,
        state: CheckpointState,
        error: SyncError,
        cause: BaseException,
        started_at: dt.datetime,
    ) -> None:
        self._event_logger.log_run_failed(
            job_key=self._config.job_key,
            error=cause,
            duration=utcnow() - started_at,
        )
        try:
            await record_failed(
                self._session_factory,
                self._config.job_key,
                resume_cursor=progress.cursor,
                resume_since=progress.since,
                retry_floor=earliest(progress.failed_floor, state.retry_floor),
                pass_started_at=progress.pass_started_at,
                error=str(error),
            )
        except SQLAlchemyError as exc:
            log_exception(
                logger,
                f"Could not record resume point for {self._config.job_key}",
                exc,
            )
