"""Repository functions for card records."""

from __future__ import annotations

import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gestioncartes.models import Carte


def _as_uuid(value: str | uuid.UUID | None) -> uuid.UUID | None:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


async def get_carte(
    db: AsyncSession,
    carte_id: str | uuid.UUID | None,
    for_update: bool = False,
) -> Carte | None:
    """Get a card by id, optionally locking the row for the current transaction."""
    parsed = _as_uuid(carte_id)
    if parsed is None:
        return None
    query = select(Carte).where(Carte.id == parsed)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def add_carte(db: AsyncSession, carte: Carte) -> Carte:
    db.add(carte)
    await db.flush()
    await db.refresh(carte)
    return carte


async def delete_carte(db: AsyncSession, carte: Carte) -> None:
    await db.delete(carte)
    await db.flush()


async def exists_by_name(db: AsyncSession, nom: str, prenoms: str) -> bool:
    result = await db.execute(
        select(func.count(Carte.id)).where(Carte.nom == nom).where(Carte.prenoms == prenoms)
    )
    return int(result.scalar_one()) > 0


async def count_by_batch(db: AsyncSession, batch_id: str) -> int:
    result = await db.execute(
        select(func.count(Carte.id)).where(Carte.import_batch_id == batch_id)
    )
    return int(result.scalar_one())


async def delete_by_batch(db: AsyncSession, batch_id: str) -> int:
    """Bulk delete every card of an import batch; returns the number removed."""
    result = await db.execute(
        delete(Carte)
        .where(Carte.import_batch_id == batch_id)
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount or 0)
