"""Persistent bookkeeping for registry sync runs."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import enum

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mcpmirror.common.time import utcnow
from mcpmirror.storage.base import Base, UTCDateTime


class SyncOutcome(enum.StrEnum):
    """Terminal state recorded for the most recent run of a sync job."""

    COMPLETED = "completed"
    FAILED = "failed"


class SyncCheckpoint(Base):
    """Lease, resume cursor and retry floor for one sync job.

    ``resume_cursor``/``resume_since`` are only meaningful while
    ``resume_pending`` is set: they describe the page a failed run could not
    fetch and the ``updated_since`` filter that run was using. ``retry_floor``
    is the earliest upstream ``updatedAt`` among records whose upsert failed
    and that have not been refetched by a full pass since.

    ``pass_started_at`` is the start of the pass in progress and survives
    resumes; ``synced_through`` is the start of the last pass that reached
    the final page. Entries changed upstream after ``synced_through`` may
    have been missed by that pass, so the next watermark never exceeds it.
    """

    __tablename__ = "sync_checkpoints"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    job_key: Mapped[str] = mapped_column(String(64), unique=True)
    lease_owner: Mapped[str | None] = mapped_column(String(64), default=None)
    lease_expires_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    resume_pending: Mapped[bool] = mapped_column(Boolean, default=False)
    resume_cursor: Mapped[str | None] = mapped_column(Text(), default=None)
    resume_since: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    retry_floor: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    pass_started_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    synced_through: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    last_started_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    last_finished_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    last_outcome: Mapped[str | None] = mapped_column(String(16), default=None)
    last_error: Mapped[str | None] = mapped_column(Text(), default=None)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )
