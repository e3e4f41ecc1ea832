"""Read and record the resume/retry state kept for each sync job."""

from __future__ import annotations

import dataclasses
import typing as typ

from sqlalchemy import select

from mcpmirror.common.time import utcnow
from mcpmirror.storage import SyncCheckpoint, SyncOutcome

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    type SessionFactory = async_sessionmaker[AsyncSession]


@dataclasses.dataclass(frozen=True, slots=True)
class CheckpointState:
    """Snapshot of a job checkpoint taken when a run starts."""

    resume_pending: bool = False
    resume_cursor: str | None = None
    resume_since: dt.datetime | None = None
    retry_floor: dt.datetime | None = None
    pass_started_at: dt.datetime | None = None
    synced_through: dt.datetime | None = None


def earliest(*values: dt.datetime | None) -> dt.datetime | None:
    """Return the earliest non-``None`` value, or ``None`` if there is none."""
    present = [value for value in values if value is not None]
    return min(present) if present else None


async def _get_checkpoint(session: AsyncSession, job_key: str) -> SyncCheckpoint:
    checkpoint = await session.scalar(
        select(SyncCheckpoint).where(SyncCheckpoint.job_key == job_key)
    )
    if checkpoint is None:
        checkpoint = SyncCheckpoint(job_key=job_key)
        session.add(checkpoint)
    return checkpoint


async def load_checkpoint(
    session_factory: SessionFactory, job_key: str
) -> CheckpointState:
    """Return the stored state for ``job_key`` and stamp the run start."""
    async with session_factory() as session, session.begin():
        checkpoint = await _get_checkpoint(session, job_key)
        checkpoint.last_started_at = utcnow()
        return CheckpointState(
            resume_pending=bool(checkpoint.resume_pending),
            resume_cursor=checkpoint.resume_cursor,
            resume_since=checkpoint.resume_since,
            retry_floor=checkpoint.retry_floor,
            pass_started_at=checkpoint.pass_started_at,
            synced_through=checkpoint.synced_through,
        )


async def record_completed(
    session_factory: SessionFactory,
    job_key: str,
    *,
    retry_floor: dt.datetime | None,
    pass_started_at: dt.datetime,
) -> None:
    """Clear resume state after a run reached the last page.

    ``pass_started_at`` becomes the new ``synced_through`` bound.
    """
    async with session_factory() as session, session.begin():
        checkpoint = await _get_checkpoint(session, job_key)
        checkpoint.resume_pending = False
        checkpoint.resume_cursor = None
        checkpoint.resume_since = None
        checkpoint.retry_floor = retry_floor
        checkpoint.pass_started_at = None
        checkpoint.synced_through = pass_started_at
        checkpoint.last_finished_at = utcnow()
        checkpoint.last_outcome = SyncOutcome.COMPLETED.value
        checkpoint.last_error = None


async def record_failed(
    session_factory: SessionFactory,
    job_key: str,
    *,
    resume_cursor: str | None,
    resume_since: dt.datetime | None,
    retry_floor: dt.datetime | None,
    pass_started_at: dt.datetime,
    error: str,
) -> None:
    """Store where an aborted run stopped so the next run picks up there."""
    async with session_factory() as session, session.begin():
        checkpoint = await _get_checkpoint(session, job_key)
        checkpoint.resume_pending = True
        checkpoint.resume_cursor = resume_cursor
        checkpoint.resume_since = resume_since
        checkpoint.retry_floor = retry_floor
        checkpoint.pass_started_at = pass_started_at
        checkpoint.last_finished_at = utcnow()
        checkpoint.last_outcome = SyncOutcome.FAILED.value
        checkpoint.last_error = error
