"""Single-flight guard for sync runs, stored on the checkpoint row."""

from __future__ import annotations

import typing as typ
import uuid

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError

from mcpmirror.common.time import utcnow
from mcpmirror.logging import get_logger, log_debug
from mcpmirror.storage import SyncCheckpoint
from mcpmirror.sync.errors import SyncInProgressError

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    type SessionFactory = async_sessionmaker[AsyncSession]

logger = get_logger(__name__)


async def ensure_checkpoint(session_factory: SessionFactory, job_key: str) -> None:
    """Create the checkpoint row for ``job_key`` if it does not exist yet."""
    try:
        async with session_factory() as session, session.begin():
            existing = await session.scalar(
                select(SyncCheckpoint.id).where(SyncCheckpoint.job_key == job_key)
            )
            if existing is None:
                session.add(SyncCheckpoint(job_key=job_key))
    except IntegrityError:
        # Another process inserted the row between our read and write.
        log_debug(logger, "Checkpoint for %s created concurrently", job_key)


class SyncLease:
    """Time-bounded lease that lets at most one run of a job proceed.

    Acquisition is a single conditional ``UPDATE`` that only succeeds while
    the lease is free or expired, so it is atomic across processes sharing
    the database. An expired lease belongs to a run that crashed or blew
    through its deadline and may be taken over.

    Usage
    -----
    ::

        async with SyncLease(session_factory, "registry", ttl):
            ...

    """

    def __init__(
        self,
        session_factory: SessionFactory,
        job_key: str,
        ttl: dt.timedelta,
        *,
        owner: str | None = None,
    ) -> None:
        """Configure the lease for ``job_key`` held by ``owner``."""
        self._session_factory = session_factory
        self.job_key = job_key
        self.ttl = ttl
        self.owner = owner or uuid.uuid4().hex

    async def acquire(self) -> None:
        """Take the lease.

        Raises
        ------
        SyncInProgressError
            If another owner holds an unexpired lease.

        """
        await ensure_checkpoint(self._session_factory, self.job_key)
        now = utcnow()
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                update(SyncCheckpoint)
                .where(
                    SyncCheckpoint.job_key == self.job_key,
                    or_(
                        SyncCheckpoint.lease_owner.is_(None),
                        SyncCheckpoint.lease_expires_at.is_(None),
                        SyncCheckpoint.lease_expires_at < now,
                    ),
                )
                .values(lease_owner=self.owner, lease_expires_at=now + self.ttl)
                .execution_options(synchronize_session=False)
            )
        if result.rowcount != 1:
            raise SyncInProgressError(self.job_key)

    async def release(self) -> None:
        """Give the lease back if this owner still holds it."""
        async with self._session_factory() as session, session.begin():
            await session.execute(
                update(SyncCheckpoint)
                .where(
                    SyncCheckpoint.job_key == self.job_key,
                    SyncCheckpoint.lease_owner == self.owner,
                )
                .values(lease_owner=None, lease_expires_at=None)
                .execution_options(synchronize_session=False)
            )

    async def __aenter__(self) -> SyncLease:
        """Acquire the lease for the duration of the block."""
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Release the lease."""
        await self.release()
