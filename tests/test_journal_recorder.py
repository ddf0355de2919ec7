"""Tests for the action recorder."""

from __future__ import annotations

import json
import uuid

import pytest
from sqlalchemy import select

from gestioncartes.exceptions import ValidationError
from gestioncartes.models import ActionType, JournalEntry
from gestioncartes.services.actor import Actor
from gestioncartes.services.journal_recorder import ActionRecorder


def test_build_entry_copies_actor_and_serializes_snapshots(admin):
    target = uuid.uuid4()
    entry = ActionRecorder.build_entry(
        ActionType.UPDATE,
        admin,
        target_table="Cartes",
        target_id=target,
        old_value={"NOM": "KONÉ"},
        new_value={"NOM": "KONE"},
        ip_address="192.168.1.20",
    )

    assert entry.user_id == "u-admin"
    assert entry.full_name == "Awa Traore"
    assert entry.agency == "Abidjan"
    assert entry.action_type == "UPDATE"
    assert entry.action == "UPDATE"
    assert entry.target_id == str(target)
    assert json.loads(entry.old_value) == {"NOM": "KONÉ"}
    # non-ASCII kept readable in the stored text
    assert "KONÉ" in entry.old_value


def test_build_entry_keeps_preserialized_text(admin):
    entry = ActionRecorder.build_entry(ActionType.DELETE, admin, old_value='{"NOM": "X"}')

    assert entry.old_value == '{"NOM": "X"}'
    assert entry.new_value is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("action_type", "old_value", "new_value"),
    [
        (ActionType.CREATE, {"NOM": "A"}, {"NOM": "A"}),
        (ActionType.CREATE, None, None),
        (ActionType.UPDATE, None, {"NOM": "A"}),
        (ActionType.DELETE, None, None),
        (ActionType.DELETE, {"NOM": "A"}, {"NOM": "A"}),
    ],
)
async def test_record_rejects_inconsistent_snapshots(
    database, recorder, admin, action_type, old_value, new_value
):
    async with database.session_factory() as db:
        with pytest.raises(ValidationError):
            await recorder.record(
                db,
                action_type,
                admin,
                target_table="Cartes",
                old_value=old_value,
                new_value=new_value,
            )


@pytest.mark.asyncio
async def test_record_joins_caller_transaction(database, recorder, admin):
    async with database.session_factory() as db:
        entry = await recorder.record(
            db,
            ActionType.CREATE,
            admin,
            target_table="Cartes",
            target_id="abc",
            new_value={"NOM": "A"},
        )
        entry_id = entry.id
        await db.rollback()

    async with database.session_factory() as db:
        found = await db.get(JournalEntry, entry_id)
    assert found is None


@pytest.mark.asyncio
async def test_record_best_effort_persists_in_own_session(database, recorder, admin):
    entry_id = await recorder.record_best_effort(
        ActionType.BULK_IMPORT_START,
        admin,
        target_table="Cartes",
        import_batch_id="batch-1",
        details="Import started",
    )

    assert entry_id is not None
    async with database.session_factory() as db:
        entry = await db.get(JournalEntry, entry_id)
    assert entry.import_batch_id == "batch-1"


@pytest.mark.asyncio
async def test_record_best_effort_swallows_failures(admin):
    def broken_factory():
        raise RuntimeError("pool exhausted")

    recorder = ActionRecorder(broken_factory)

    assert await recorder.record_best_effort(ActionType.LOGIN, admin) is None


@pytest.mark.asyncio
async def test_record_best_effort_without_factory(admin):
    assert await ActionRecorder().record_best_effort(ActionType.LOGIN, admin) is None


@pytest.mark.asyncio
async def test_record_login(database, recorder):
    actor = Actor.from_claims(
        {"sub": "42", "username": "jdoe", "full_name": "Jean Doe", "role": "Superviseur"}
    )

    entry_id = await recorder.record_login(actor, ip_address="10.0.0.9")

    async with database.session_factory() as db:
        result = await db.execute(select(JournalEntry).where(JournalEntry.id == entry_id))
        entry = result.scalar_one()
    assert entry.action_type == ActionType.LOGIN.value
    assert entry.target_table == "Utilisateurs"
    assert entry.target_id == "42"
    assert entry.user_name == "jdoe"
    assert entry.role == "Superviseur"
