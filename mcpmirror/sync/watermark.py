"""Change watermark queries over the mirrored servers.

The watermark bounds the next upstream fetch: only entries updated after it
are requested. It is computed once when a run starts and stays fixed for the
whole pass, so entries that change upstream mid-run are picked up by the next
run rather than missed.
"""

from __future__ import annotations

import typing as typ

from sqlalchemy import func, select

from mcpmirror.storage import ServerRecord

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession


async def latest_updated_at(session: AsyncSession) -> dt.datetime | None:
    """Return the newest mirrored ``updated_at``, or ``None`` for an empty store."""
    return await session.scalar(
        select(ServerRecord.updated_at)
        .order_by(ServerRecord.updated_at.desc())
        .limit(1)
    )


async def latest_versions(
    session: AsyncSession, name: str | None = None
) -> list[ServerRecord]:
    """Return the most recently updated version of each server name.

    Parameters
    ----------
    session
        Session used for the read.
    name
        Restrict the result to one server name.

    """
    newest = (
        select(
            ServerRecord.name.label("name"),
            func.max(ServerRecord.updated_at).label("updated_at"),
        )
        .group_by(ServerRecord.name)
        .subquery()
    )
    query = select(ServerRecord).join(
        newest,
        (ServerRecord.name == newest.c.name)
        & (ServerRecord.updated_at == newest.c.updated_at),
    )
    if name is not None:
        query = query.where(ServerRecord.name == name)
    rows = await session.scalars(query.order_by(ServerRecord.name))
    return list(rows)


def compute_watermark(
    latest: dt.datetime | None,
    retry_floor: dt.datetime | None,
    synced_through: dt.datetime,
) -> dt.datetime | None:
    """Return the boundary for the next fetch.

    ``None`` requests a full sync and is only returned for an empty store.
    Otherwise the boundary never exceeds ``synced_through``, the start of the
    last pass that reached the final page, because entries changed while that
    pass was paging may sit on pages it had already read. It is also pulled
    back to ``retry_floor`` so records that failed to upsert are refetched.
    """
    if latest is None:
        return None
    candidates = [latest, synced_through]
    if retry_floor is not None:
        candidates.append(retry_floor)
    return min(candidates)


def updated_since(
    watermark: dt.datetime | None, overlap: dt.timedelta
) -> dt.datetime | None:
    """Apply the overlap margin to ``watermark``.

    The registry filter is exclusive, so the margin keeps records stamped at
    the boundary itself inside the next fetch.
    """
    if watermark is None:
        return None
    return watermark - overlap
