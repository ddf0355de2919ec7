"""Tests for the undo engine against a real database."""

from __future__ import annotations

import json
import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from gestioncartes.exceptions import (
    AlreadyUndoneError,
    CorruptEntryError,
    JournalInternalError,
    LogEntryNotFoundError,
    NoModifiableFieldsError,
    RecordGoneError,
    UnsupportedUndoError,
    WriteConflictError,
)
from gestioncartes.models import ActionType, Carte, JournalEntry
from gestioncartes.repositories import carte_repo, journal_repo
from gestioncartes.services.cartes import CarteService
from gestioncartes.services.undo import UndoEngine


async def _create(database, recorder, actor, data) -> Carte:
    async with database.session_factory() as db:
        return await CarteService(db, recorder).create(data, actor)


async def _entries(database, action_type: ActionType | None = None) -> list[JournalEntry]:
    async with database.session_factory() as db:
        query = select(JournalEntry).order_by(JournalEntry.timestamp)
        if action_type is not None:
            query = query.where(JournalEntry.action_type == action_type.value)
        result = await db.execute(query)
        return list(result.scalars().all())


async def _get_carte(database, carte_id) -> Carte | None:
    async with database.session_factory() as db:
        return await carte_repo.get_carte(db, carte_id)


async def _undo(database, recorder, entry_id, actor):
    async with database.session_factory() as db:
        return await UndoEngine(db, recorder).undo(entry_id, actor, ip_address="10.0.0.1")


async def _add_entry(database, recorder, actor, action_type, **fields) -> JournalEntry:
    entry = recorder.build_entry(action_type, actor, **fields)
    async with database.session_factory() as db:
        db.add(entry)
        await db.commit()
    return entry


@pytest.mark.asyncio
async def test_undo_create_removes_record(database, recorder, admin, carte_data):
    carte = await _create(database, recorder, admin, carte_data)
    [create_entry] = await _entries(database, ActionType.CREATE)

    outcome = await _undo(database, recorder, create_entry.id, admin)

    assert outcome.success is True
    assert outcome.target_id == str(carte.id)
    assert await _get_carte(database, carte.id) is None


@pytest.mark.asyncio
async def test_undo_update_restores_previous_values(database, recorder, admin, carte_data):
    carte = await _create(database, recorder, admin, carte_data)
    async with database.session_factory() as db:
        await CarteService(db, recorder).update(
            carte.id,
            {"NOM": "KOUAME-BROU", "SITE DE RETRAIT": "Yopougon", "DELIVRANCE": "2024-01-01"},
            admin,
        )
    [update_entry] = await _entries(database, ActionType.UPDATE)

    await _undo(database, recorder, update_entry.id, admin)

    restored = await _get_carte(database, carte.id)
    assert restored.nom == "KOUAME"
    assert restored.site_retrait == "Cocody"
    assert restored.delivrance == ""
    assert restored.created_at == carte.created_at


@pytest.mark.asyncio
async def test_undo_delete_reinserts_with_new_identity(database, recorder, admin, carte_data):
    carte = await _create(database, recorder, admin, carte_data)
    async with database.session_factory() as db:
        await CarteService(db, recorder).delete(carte.id, admin)
    [delete_entry] = await _entries(database, ActionType.DELETE)

    outcome = await _undo(database, recorder, delete_entry.id, admin)

    assert outcome.target_id != str(carte.id)
    reborn = await _get_carte(database, outcome.target_id)
    assert reborn is not None
    assert reborn.nom == "KOUAME"
    assert reborn.prenoms == "Jean"
    assert reborn.rangement == "A-12"
    assert await _get_carte(database, carte.id) is None


@pytest.mark.asyncio
async def test_undo_of_undo_is_unsupported(database, recorder, admin, carte_data):
    carte = await _create(database, recorder, admin, carte_data)
    async with database.session_factory() as db:
        await CarteService(db, recorder).update(carte.id, {"RANGEMENT": "B-01"}, admin)
    [update_entry] = await _entries(database, ActionType.UPDATE)

    outcome = await _undo(database, recorder, update_entry.id, admin)

    with pytest.raises(UnsupportedUndoError):
        await _undo(database, recorder, outcome.undo_entry_id, admin)


@pytest.mark.asyncio
async def test_failed_counter_entry_rolls_back_mutation(
    database, recorder, admin, carte_data, monkeypatch
):
    carte = await _create(database, recorder, admin, carte_data)
    async with database.session_factory() as db:
        await CarteService(db, recorder).update(carte.id, {"DELIVRANCE": "2024-01-01"}, admin)
    [update_entry] = await _entries(database, ActionType.UPDATE)

    async def failing_record(*_args, **_kwargs):
        raise RuntimeError("journal unavailable")

    monkeypatch.setattr(recorder, "record", failing_record)

    with pytest.raises(RuntimeError):
        await _undo(database, recorder, update_entry.id, admin)

    unchanged = await _get_carte(database, carte.id)
    assert unchanged.delivrance == "2024-01-01"
    assert await _entries(database, ActionType.UNDO) == []


@pytest.mark.asyncio
async def test_kouame_scenario(database, recorder, admin):
    carte = await _create(database, recorder, admin, {"NOM": "KOUAME", "PRENOMS": "Jean"})
    [e1] = await _entries(database, ActionType.CREATE)
    assert json.loads(e1.new_value)["NOM"] == "KOUAME"
    assert e1.old_value is None

    async with database.session_factory() as db:
        await CarteService(db, recorder).update(carte.id, {"DELIVRANCE": "2024-01-01"}, admin)
    [e2] = await _entries(database, ActionType.UPDATE)
    assert json.loads(e2.old_value)["DELIVRANCE"] == ""
    assert json.loads(e2.new_value)["DELIVRANCE"] == "2024-01-01"

    first = await _undo(database, recorder, e2.id, admin)
    assert (await _get_carte(database, carte.id)).delivrance == ""

    [e3] = await _entries(database, ActionType.UNDO)
    assert e3.id == first.undo_entry_id
    assert e3.undone_entry_id == e2.id
    assert json.loads(e3.old_value)["DELIVRANCE"] == "2024-01-01"
    assert json.loads(e3.new_value)["DELIVRANCE"] == ""
    assert e3.ip_address == "10.0.0.1"

    await _undo(database, recorder, e1.id, admin)
    assert await _get_carte(database, carte.id) is None
    assert len(await _entries(database, ActionType.UNDO)) == 2

    with pytest.raises(RecordGoneError):
        await _undo(database, recorder, e1.id, admin)
    assert len(await _entries(database, ActionType.UNDO)) == 2


@pytest.mark.asyncio
async def test_second_delete_undo_is_refused(database, recorder, admin, carte_data):
    carte = await _create(database, recorder, admin, carte_data)
    async with database.session_factory() as db:
        await CarteService(db, recorder).delete(carte.id, admin)
    [delete_entry] = await _entries(database, ActionType.DELETE)

    await _undo(database, recorder, delete_entry.id, admin)
    with pytest.raises(AlreadyUndoneError):
        await _undo(database, recorder, delete_entry.id, admin)

    async with database.session_factory() as db:
        result = await db.execute(select(Carte).where(Carte.nom == "KOUAME"))
        assert len(result.scalars().all()) == 1


@pytest.mark.asyncio
async def test_undo_locks_the_entry_row(database, recorder, admin, carte_data, monkeypatch):
    carte = await _create(database, recorder, admin, carte_data)
    async with database.session_factory() as db:
        await CarteService(db, recorder).delete(carte.id, admin)
    [delete_entry] = await _entries(database, ActionType.DELETE)

    calls = []
    original_get_by_id = journal_repo.get_by_id

    async def recording_get_by_id(db, entry_id, for_update=False):
        calls.append(for_update)
        return await original_get_by_id(db, entry_id, for_update=for_update)

    monkeypatch.setattr(journal_repo, "get_by_id", recording_get_by_id)

    await _undo(database, recorder, delete_entry.id, admin)

    assert calls == [True]


@pytest.mark.asyncio
async def test_undo_update_of_deleted_record_reports_record_gone(
    database, recorder, admin, carte_data
):
    carte = await _create(database, recorder, admin, carte_data)
    async with database.session_factory() as db:
        await CarteService(db, recorder).update(carte.id, {"RANGEMENT": "Z-9"}, admin)
    async with database.session_factory() as db:
        await CarteService(db, recorder).delete(carte.id, admin)
    [update_entry] = await _entries(database, ActionType.UPDATE)

    with pytest.raises(RecordGoneError):
        await _undo(database, recorder, update_entry.id, admin)


@pytest.mark.asyncio
async def test_unknown_entry_is_not_found(database, recorder, admin):
    with pytest.raises(LogEntryNotFoundError):
        await _undo(database, recorder, uuid.uuid4(), admin)
    with pytest.raises(LogEntryNotFoundError):
        await _undo(database, recorder, "not-a-uuid", admin)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "action_type",
    [ActionType.LOGIN, ActionType.BULK_IMPORT_CANCEL, ActionType.BULK_IMPORT_START],
)
async def test_administrative_entries_are_unsupported(database, recorder, admin, action_type):
    entry = await _add_entry(database, recorder, admin, action_type, target_table="Cartes")

    with pytest.raises(UnsupportedUndoError):
        await _undo(database, recorder, entry.id, admin)


@pytest.mark.asyncio
async def test_other_tables_are_unsupported(database, recorder, admin):
    entry = await _add_entry(
        database,
        recorder,
        admin,
        ActionType.UPDATE,
        target_table="Utilisateurs",
        target_id=str(uuid.uuid4()),
        old_value={"NomUtilisateur": "x"},
        new_value={"NomUtilisateur": "y"},
    )

    with pytest.raises(UnsupportedUndoError):
        await _undo(database, recorder, entry.id, admin)


@pytest.mark.asyncio
async def test_legacy_table_alias_is_undoable(database, recorder, admin, carte_data):
    carte = await _create(database, recorder, admin, carte_data)
    entry = await _add_entry(
        database,
        recorder,
        admin,
        ActionType.UPDATE,
        target_table="cartes",
        target_id=str(carte.id),
        old_value={"RANGEMENT": "OLD"},
        new_value={"RANGEMENT": "A-12"},
    )

    await _undo(database, recorder, entry.id, admin)

    assert (await _get_carte(database, carte.id)).rangement == "OLD"


@pytest.mark.asyncio
async def test_entry_without_snapshots_is_corrupt(database, recorder, admin, carte_data):
    carte = await _create(database, recorder, admin, carte_data)
    entry = await _add_entry(
        database,
        recorder,
        admin,
        ActionType.UPDATE,
        target_table="Cartes",
        target_id=str(carte.id),
        old_value="{not json",
    )

    with pytest.raises(CorruptEntryError):
        await _undo(database, recorder, entry.id, admin)


@pytest.mark.asyncio
async def test_snapshot_with_only_system_fields(database, recorder, admin, carte_data):
    carte = await _create(database, recorder, admin, carte_data)
    entry = await _add_entry(
        database,
        recorder,
        admin,
        ActionType.UPDATE,
        target_table="Cartes",
        target_id=str(carte.id),
        old_value={"_id": str(carte.id), "created_at": "2020-01-01T00:00:00", "legacyOnly": 1},
        new_value={"_id": str(carte.id)},
    )

    with pytest.raises(NoModifiableFieldsError):
        await _undo(database, recorder, entry.id, admin)


@pytest.mark.asyncio
async def test_concurrent_modification_is_retryable(
    database, recorder, admin, carte_data, monkeypatch
):
    carte = await _create(database, recorder, admin, carte_data)
    async with database.session_factory() as db:
        await CarteService(db, recorder).update(carte.id, {"RANGEMENT": "B-2"}, admin)
    [update_entry] = await _entries(database, ActionType.UPDATE)

    async def stale_get_carte(*_args, **_kwargs):
        raise StaleDataError("UPDATE statement on table 'cartes' expected to update 1 row(s)")

    monkeypatch.setattr(carte_repo, "get_carte", stale_get_carte)

    with pytest.raises(WriteConflictError) as exc_info:
        await _undo(database, recorder, update_entry.id, admin)

    assert exc_info.value.retryable is True
    assert await _entries(database, ActionType.UNDO) == []


@pytest.mark.asyncio
async def test_unclassified_store_failure_is_internal(
    database, recorder, admin, carte_data, monkeypatch
):
    from sqlalchemy.exc import SQLAlchemyError

    carte = await _create(database, recorder, admin, carte_data)
    [create_entry] = await _entries(database, ActionType.CREATE)

    async def broken_get_carte(*_args, **_kwargs):
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(carte_repo, "get_carte", broken_get_carte)

    with pytest.raises(JournalInternalError) as exc_info:
        await _undo(database, recorder, create_entry.id, admin)

    assert exc_info.value.retryable is False
    assert await _get_carte_direct(database, carte.id) is not None


async def _get_carte_direct(database, carte_id) -> Carte | None:
    async with database.session_factory() as db:
        return await db.get(Carte, carte_id)
