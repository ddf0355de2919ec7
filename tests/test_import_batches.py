"""Tests for bulk import and import batch cancellation."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from gestioncartes.exceptions import AuthorizationError, BatchEmptyError
from gestioncartes.models import ActionType, Carte, JournalEntry
from gestioncartes.services.cartes import CarteService
from gestioncartes.services.import_batches import ImportBatchLedger


def _rows(count: int, prefix: str = "DIALLO") -> list[dict]:
    return [
        {"NOM": f"{prefix}{i}", "PRENOMS": "Aminata", "SITE DE RETRAIT": "Treichville"}
        for i in range(count)
    ]


async def _import(database, recorder, actor, rows):
    async with database.session_factory() as db:
        return await CarteService(db, recorder).import_rows(rows, actor, source_name="lot.xlsx")


async def _count(database, model, *clauses) -> int:
    async with database.session_factory() as db:
        result = await db.execute(select(func.count()).select_from(model).where(*clauses))
        return int(result.scalar_one())


@pytest.mark.asyncio
async def test_import_journals_each_item_and_markers(database, recorder, admin):
    result = await _import(database, recorder, admin, _rows(3))

    assert result.imported == 3
    assert result.total_processed == 3
    assert await _count(database, Carte, Carte.import_batch_id == result.batch_id) == 3

    for action_type, expected in [
        (ActionType.BULK_IMPORT_START, 1),
        (ActionType.BULK_IMPORT_ITEM, 3),
        (ActionType.BULK_IMPORT_END, 1),
    ]:
        count = await _count(
            database,
            JournalEntry,
            JournalEntry.action_type == action_type.value,
            JournalEntry.import_batch_id == result.batch_id,
        )
        assert count == expected


@pytest.mark.asyncio
async def test_import_skips_duplicates_and_rejects_incomplete_rows(database, recorder, admin):
    await _import(database, recorder, admin, _rows(1))

    rows = _rows(2) + [{"NOM": "SANS PRENOM"}, {"NOM": "", "PRENOMS": ""}]
    result = await _import(database, recorder, admin, rows)

    assert result.imported == 1
    assert result.duplicates == 1
    assert result.errors == 1
    assert result.total_processed == 3
    assert "NOM and PRENOMS" in result.error_details[0]


@pytest.mark.asyncio
async def test_operator_cannot_import(database, recorder, operator):
    with pytest.raises(AuthorizationError):
        await _import(database, recorder, operator, [{"NOM": "A", "PRENOMS": "B"}])

    assert await _count(database, Carte) == 0
    assert await _count(database, JournalEntry) == 0


@pytest.mark.asyncio
async def test_list_batches_groups_items(database, recorder, admin):
    first = await _import(database, recorder, admin, _rows(2, "A"))
    second = await _import(database, recorder, admin, _rows(3, "B"))

    async with database.session_factory() as db:
        batches = await ImportBatchLedger(db, recorder).list_batches()

    assert [b.batch_id for b in batches] == [second.batch_id, first.batch_id]
    assert [b.item_count for b in batches] == [3, 2]
    assert batches[0].user_name == "admin"
    assert batches[0].agency == "Abidjan"


@pytest.mark.asyncio
async def test_cancel_batch_is_one_entry_for_all_records(database, recorder, admin):
    kept = await _import(database, recorder, admin, _rows(2, "KEEP"))
    result = await _import(database, recorder, admin, _rows(4))

    async with database.session_factory() as db:
        cancelled = await ImportBatchLedger(db, recorder).cancel_batch(
            result.batch_id, admin, ip_address="10.1.1.1"
        )

    assert cancelled.deleted_count == 4
    assert await _count(database, Carte, Carte.import_batch_id == result.batch_id) == 0
    assert await _count(database, Carte, Carte.import_batch_id == kept.batch_id) == 2

    cancel_entries = await _count(
        database,
        JournalEntry,
        JournalEntry.action_type == ActionType.BULK_IMPORT_CANCEL.value,
    )
    assert cancel_entries == 1

    async with database.session_factory() as db:
        entry = (
            await db.execute(
                select(JournalEntry).where(
                    JournalEntry.action_type == ActionType.BULK_IMPORT_CANCEL.value
                )
            )
        ).scalar_one()
    assert entry.target_id == result.batch_id
    assert entry.import_batch_id == result.batch_id
    assert entry.ip_address == "10.1.1.1"


@pytest.mark.asyncio
async def test_cancelling_twice_reports_empty_batch(database, recorder, admin):
    result = await _import(database, recorder, admin, _rows(2))

    async with database.session_factory() as db:
        await ImportBatchLedger(db, recorder).cancel_batch(result.batch_id, admin)

    with pytest.raises(BatchEmptyError):
        async with database.session_factory() as db:
            await ImportBatchLedger(db, recorder).cancel_batch(result.batch_id, admin)

    cancel_entries = await _count(
        database,
        JournalEntry,
        JournalEntry.action_type == ActionType.BULK_IMPORT_CANCEL.value,
    )
    assert cancel_entries == 1


@pytest.mark.asyncio
async def test_cancel_unknown_batch(database, recorder, admin):
    with pytest.raises(BatchEmptyError):
        async with database.session_factory() as db:
            await ImportBatchLedger(db, recorder).cancel_batch("no-such-batch", admin)
