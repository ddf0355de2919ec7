"""Repository functions for the append-only journal store."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from typing import Any

from sqlalchemy import ColumnElement, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from gestioncartes.models import ActionType, JournalEntry


@dataclass
class JournalFilters:
    """Listing filters; values are expected in canonical form."""

    date_from: date | None = None
    date_to: date | None = None
    user: str | None = None
    action_type: str | None = None
    target_table: str | None = None


@dataclass
class BatchSummary:
    batch_id: str
    item_count: int
    started_at: datetime
    user_name: str
    full_name: str
    agency: str | None


@dataclass
class ActivityStat:
    action_type: str
    count: int
    last_occurred: datetime


def _as_uuid(value: str | uuid.UUID) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _filter_clauses(filters: JournalFilters) -> list[ColumnElement[Any]]:
    clauses: list[ColumnElement[Any]] = []
    if filters.date_from:
        clauses.append(
            JournalEntry.timestamp >= datetime.combine(filters.date_from, time.min, tzinfo=UTC)
        )
    if filters.date_to:
        # inclusive through the end of that day
        clauses.append(
            JournalEntry.timestamp <= datetime.combine(filters.date_to, time.max, tzinfo=UTC)
        )
    if filters.user:
        clauses.append(
            or_(
                JournalEntry.user_name.icontains(filters.user, autoescape=True),
                JournalEntry.full_name.icontains(filters.user, autoescape=True),
            )
        )
    if filters.action_type:
        clauses.append(JournalEntry.action_type == filters.action_type)
    if filters.target_table:
        clauses.append(JournalEntry.target_table == filters.target_table)
    return clauses


async def append(db: AsyncSession, entry: JournalEntry) -> uuid.UUID:
    """Insert an entry in the caller's transaction and return its id."""
    db.add(entry)
    await db.flush()
    return entry.id


async def get_by_id(
    db: AsyncSession,
    entry_id: str | uuid.UUID,
    for_update: bool = False,
) -> JournalEntry | None:
    """Get an entry by id; malformed ids simply match nothing."""
    parsed = _as_uuid(entry_id)
    if parsed is None:
        return None
    query = select(JournalEntry).where(JournalEntry.id == parsed)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def find(
    db: AsyncSession,
    filters: JournalFilters,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[JournalEntry], int]:
    """Return one page of entries, most recent first, plus the total match count."""
    clauses = _filter_clauses(filters)

    query = (
        select(JournalEntry)
        .where(*clauses)
        .order_by(JournalEntry.timestamp.desc())
        .offset(offset)
        .limit(limit)
    )
    count_query = select(func.count(JournalEntry.id)).where(*clauses)

    total = int((await db.execute(count_query)).scalar_one())
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def group_by_batch(db: AsyncSession) -> list[BatchSummary]:
    """Summarize import batches from their per-item entries, latest batch first."""
    started_at = func.min(JournalEntry.timestamp).label("started_at")
    query = (
        select(
            JournalEntry.import_batch_id,
            func.count(JournalEntry.id).label("item_count"),
            started_at,
            # a batch is always run by a single actor
            func.min(JournalEntry.user_name).label("user_name"),
            func.min(JournalEntry.full_name).label("full_name"),
            func.min(JournalEntry.agency).label("agency"),
        )
        .where(JournalEntry.action_type == ActionType.BULK_IMPORT_ITEM.value)
        .where(JournalEntry.import_batch_id.is_not(None))
        .group_by(JournalEntry.import_batch_id)
        .order_by(started_at.desc())
    )
    result = await db.execute(query)
    return [
        BatchSummary(
            batch_id=row.import_batch_id,
            item_count=int(row.item_count),
            started_at=row.started_at,
            user_name=row.user_name,
            full_name=row.full_name,
            agency=row.agency,
        )
        for row in result.all()
    ]


async def activity_stats(db: AsyncSession, since: datetime) -> list[ActivityStat]:
    """Count entries per action type since a point in time, most frequent first."""
    entry_count = func.count(JournalEntry.id).label("entry_count")
    query = (
        select(
            JournalEntry.action_type,
            entry_count,
            func.max(JournalEntry.timestamp).label("last_occurred"),
        )
        .where(JournalEntry.timestamp >= since)
        .group_by(JournalEntry.action_type)
        .order_by(entry_count.desc())
    )
    result = await db.execute(query)
    return [
        ActivityStat(
            action_type=row.action_type,
            count=int(row.entry_count),
            last_occurred=row.last_occurred,
        )
        for row in result.all()
    ]


async def purge_older_than(db: AsyncSession, cutoff: datetime) -> int:
    """Retention sweep: the only path that ever deletes journal rows."""
    result = await db.execute(delete(JournalEntry).where(JournalEntry.timestamp < cutoff))
    return int(result.rowcount or 0)


async def find_undo_of(db: AsyncSession, entry_id: uuid.UUID) -> JournalEntry | None:
    """Return the UNDO entry that compensated `entry_id`, if any."""
    result = await db.execute(
        select(JournalEntry)
        .where(JournalEntry.action_type == ActionType.UNDO.value)
        .where(JournalEntry.undone_entry_id == entry_id)
        .limit(1)
    )
    return result.scalar_one_or_none()
