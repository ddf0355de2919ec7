"""Undo engine: applies the compensating action of a journaled mutation."""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from gestioncartes.db.base import utcnow
from gestioncartes.db.errors import translate_store_errors
from gestioncartes.exceptions import (
    AlreadyUndoneError,
    CorruptEntryError,
    LogEntryNotFoundError,
    NoModifiableFieldsError,
    RecordGoneError,
    UnsupportedUndoError,
)
from gestioncartes.models import CARTE_FIELDS, ActionType, Carte, JournalEntry
from gestioncartes.repositories import carte_repo, journal_repo
from gestioncartes.services.actor import Actor
from gestioncartes.services.journal_recorder import ActionRecorder
from gestioncartes.services.legacy_journal import canonical_table_name
from gestioncartes.services.snapshots import load_snapshot

# Identity and system fields never restored from a snapshot
SYSTEM_FIELDS = frozenset({"_id", "id", "ID", "created_at", "updated_at", "version"})

# Collections whose entries can be undone
UNDOABLE_TABLES = frozenset({"Cartes"})

# Nullable model attributes; every other card field stores "" for missing values
_NULLABLE_ATTRS = frozenset({"import_batch_id"})


@dataclass
class UndoOutcome:
    success: bool
    message: str
    undo_entry_id: uuid.UUID
    undone_entry_id: uuid.UUID
    action_type: str
    target_table: str
    target_id: str | None


def _restorable_values(snapshot: dict[str, Any]) -> dict[str, Any]:
    """Map snapshot keys onto card attributes, dropping system and unknown keys."""
    values: dict[str, Any] = {}
    ignored: list[str] = []
    for key, value in snapshot.items():
        if key in SYSTEM_FIELDS:
            continue
        attr = CARTE_FIELDS.get(key)
        if attr is None:
            ignored.append(key)
            continue
        if value is None and attr not in _NULLABLE_ATTRS:
            value = ""
        values[attr] = value if value is None else str(value)
    if ignored:
        logger.debug("Snapshot keys without a card column ignored", keys=ignored)
    return values


class UndoEngine:
    """
    Reverses a journaled CREATE, UPDATE or DELETE.

    Fetching the entry, applying the inverse mutation and writing the UNDO
    counter-entry happen in one transaction; any failure rolls all of it
    back. The original entry is never modified.

    An UNDO entry is itself not undoable.
    """

    def __init__(self, db: AsyncSession, recorder: ActionRecorder | None = None) -> None:
        self.db = db
        self.recorder = recorder or ActionRecorder()
        self._handlers: dict[
            str,
            Callable[[JournalEntry, dict[str, Any] | None], Awaitable[str]],
        ] = {
            ActionType.UPDATE.value: self._restore_update,
            ActionType.CREATE.value: self._delete_created,
            ActionType.DELETE.value: self._reinsert_deleted,
        }

    async def undo(
        self,
        entry_id: str | uuid.UUID,
        actor: Actor,
        ip_address: str | None = None,
    ) -> UndoOutcome:
        logger.info("Undo requested", entry_id=str(entry_id), user_name=actor.user_name)

        async with translate_store_errors("undo"):
            async with self.db.begin():
                # concurrent undos of the same entry queue on this row lock
                entry = await journal_repo.get_by_id(self.db, entry_id, for_update=True)
                if entry is None:
                    raise LogEntryNotFoundError(
                        "Journal entry not found",
                        details={"entry_id": str(entry_id)},
                    )

                handler = self._handlers.get(entry.action_type)
                if handler is None:
                    raise UnsupportedUndoError(
                        f"Action type {entry.action_type} cannot be undone",
                        details={"entry_id": str(entry.id), "action_type": entry.action_type},
                    )

                table = canonical_table_name(entry.target_table)
                if table not in UNDOABLE_TABLES:
                    raise UnsupportedUndoError(
                        f"Entries on table {entry.target_table} cannot be undone",
                        details={"entry_id": str(entry.id), "target_table": entry.target_table},
                    )

                old_data = load_snapshot(entry.old_value)
                new_data = load_snapshot(entry.new_value)
                if old_data is None and new_data is None:
                    raise CorruptEntryError(
                        "Journal entry has no data to restore",
                        details={"entry_id": str(entry.id)},
                    )

                target_id = await handler(entry, old_data)

                undo_entry = await self.recorder.record(
                    self.db,
                    ActionType.UNDO,
                    actor,
                    target_table=table,
                    target_id=target_id,
                    # what existed before the undo, then what exists after it
                    old_value=entry.new_value,
                    new_value=entry.old_value,
                    import_batch_id=entry.import_batch_id,
                    ip_address=ip_address,
                    action=f"Undo of {entry.action_type}",
                    details=f"Undo of {entry.action_type} (entry {entry.id}, record {entry.target_id})",
                    undone_entry_id=entry.id,
                )

        logger.info(
            "Undo applied",
            entry_id=str(entry.id),
            undo_entry_id=str(undo_entry.id),
            action_type=entry.action_type,
            target_id=target_id,
        )
        return UndoOutcome(
            success=True,
            message=f"{entry.action_type} undone",
            undo_entry_id=undo_entry.id,
            undone_entry_id=entry.id,
            action_type=entry.action_type,
            target_table=table,
            target_id=target_id,
        )

    async def _restore_update(self, entry: JournalEntry, old_data: dict[str, Any] | None) -> str:
        if old_data is None:
            raise CorruptEntryError(
                "UPDATE entry has no previous value",
                details={"entry_id": str(entry.id)},
            )

        carte = await carte_repo.get_carte(self.db, entry.target_id, for_update=True)
        if carte is None:
            raise RecordGoneError(
                "The card no longer exists",
                details={"entry_id": str(entry.id), "target_id": entry.target_id},
            )

        values = _restorable_values(old_data)
        if not values:
            raise NoModifiableFieldsError(
                "No modifiable field to restore",
                details={"entry_id": str(entry.id)},
            )

        for attr, value in values.items():
            setattr(carte, attr, value)
        carte.updated_at = utcnow()
        await self.db.flush()
        return str(carte.id)

    async def _delete_created(self, entry: JournalEntry, old_data: dict[str, Any] | None) -> str:
        carte = await carte_repo.get_carte(self.db, entry.target_id, for_update=True)
        if carte is None:
            raise RecordGoneError(
                "The card no longer exists",
                details={"entry_id": str(entry.id), "target_id": entry.target_id},
            )
        await carte_repo.delete_carte(self.db, carte)
        return str(entry.target_id)

    async def _reinsert_deleted(self, entry: JournalEntry, old_data: dict[str, Any] | None) -> str:
        if old_data is None:
            raise CorruptEntryError(
                "DELETE entry has no previous value",
                details={"entry_id": str(entry.id)},
            )

        # reinsertion is not idempotent: a second one would duplicate the card
        previous = await journal_repo.find_undo_of(self.db, entry.id)
        if previous is not None:
            raise AlreadyUndoneError(
                "This deletion was already undone",
                details={"entry_id": str(entry.id), "undo_entry_id": str(previous.id)},
            )

        values = _restorable_values(old_data)
        if not values:
            raise NoModifiableFieldsError(
                "No field to restore",
                details={"entry_id": str(entry.id)},
            )

        # the card is reborn with a new identity and fresh timestamps
        carte = await carte_repo.add_carte(self.db, Carte(**values))
        return str(carte.id)
