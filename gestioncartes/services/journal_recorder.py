"""Action recorder: builds and persists journal entries."""

from __future__ import annotations

import uuid
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gestioncartes.exceptions import ValidationError
from gestioncartes.models import ActionType, JournalEntry
from gestioncartes.repositories import journal_repo
from gestioncartes.services.actor import Actor
from gestioncartes.services.snapshots import dump_snapshot

Snapshot = dict[str, Any] | str | None

# action type -> (old_value present, new_value present)
_SNAPSHOT_SHAPES: dict[str, tuple[bool, bool]] = {
    ActionType.CREATE.value: (False, True),
    ActionType.UPDATE.value: (True, True),
    ActionType.DELETE.value: (True, False),
}


def _action_value(action_type: ActionType | str) -> str:
    return action_type.value if isinstance(action_type, ActionType) else str(action_type)


class ActionRecorder:
    """
    Writes one journal entry per action.

    `record` joins the caller's transaction and lets failures propagate, so a
    mutation and its entry commit or roll back together. `record_best_effort`
    uses its own session and never raises; it is meant for side-channel
    events (logins, import progress markers) whose loss must not fail the
    operation they describe.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self.session_factory = session_factory

    @staticmethod
    def build_entry(
        action_type: ActionType | str,
        actor: Actor,
        *,
        target_table: str | None = None,
        target_id: str | uuid.UUID | None = None,
        old_value: Snapshot = None,
        new_value: Snapshot = None,
        import_batch_id: str | None = None,
        details: str | None = None,
        ip_address: str | None = None,
        action: str | None = None,
        undone_entry_id: uuid.UUID | None = None,
    ) -> JournalEntry:
        tag = _action_value(action_type)
        return JournalEntry(
            user_id=actor.user_id,
            user_name=actor.user_name,
            full_name=actor.full_name,
            role=actor.role,
            agency=actor.agency,
            action_type=tag,
            action=action or tag,
            target_table=target_table,
            target_id=str(target_id) if target_id is not None else None,
            old_value=dump_snapshot(old_value),
            new_value=dump_snapshot(new_value),
            import_batch_id=import_batch_id,
            ip_address=ip_address,
            details=details,
            undone_entry_id=undone_entry_id,
        )

    async def record(
        self,
        db: AsyncSession,
        action_type: ActionType | str,
        actor: Actor,
        *,
        target_table: str | None = None,
        target_id: str | uuid.UUID | None = None,
        old_value: Snapshot = None,
        new_value: Snapshot = None,
        import_batch_id: str | None = None,
        details: str | None = None,
        ip_address: str | None = None,
        action: str | None = None,
        undone_entry_id: uuid.UUID | None = None,
    ) -> JournalEntry:
        """Append an entry inside the caller's transaction."""
        tag = _action_value(action_type)
        shape = _SNAPSHOT_SHAPES.get(tag)
        if shape is not None:
            expected_old, expected_new = shape
            if (old_value is not None) != expected_old or (new_value is not None) != expected_new:
                raise ValidationError(
                    f"{tag} entries need old_value={'set' if expected_old else 'null'} "
                    f"and new_value={'set' if expected_new else 'null'}",
                    details={"action_type": tag},
                )

        entry = self.build_entry(
            tag,
            actor,
            target_table=target_table,
            target_id=target_id,
            old_value=old_value,
            new_value=new_value,
            import_batch_id=import_batch_id,
            details=details,
            ip_address=ip_address,
            action=action,
            undone_entry_id=undone_entry_id,
        )
        await journal_repo.append(db, entry)
        logger.debug(
            "Journal entry recorded",
            entry_id=str(entry.id),
            action_type=tag,
            target_table=target_table,
            target_id=entry.target_id,
        )
        return entry

    async def record_best_effort(
        self,
        action_type: ActionType | str,
        actor: Actor,
        **fields: Any,
    ) -> uuid.UUID | None:
        """Append an entry in a separate session; failures are logged and swallowed."""
        tag = _action_value(action_type)
        if self.session_factory is None:
            logger.error("No session factory configured for best-effort journaling", action_type=tag)
            return None

        try:
            entry = self.build_entry(tag, actor, **fields)
            async with self.session_factory() as audit_db:
                audit_db.add(entry)
                await audit_db.commit()
            return entry.id
        except Exception as exc:
            logger.error("Failed to persist journal entry", action_type=tag, error=str(exc))
            return None

    async def record_login(self, actor: Actor, ip_address: str | None = None) -> uuid.UUID | None:
        return await self.record_best_effort(
            ActionType.LOGIN,
            actor,
            target_table="Utilisateurs",
            target_id=actor.user_id,
            ip_address=ip_address,
            details=f"Login: {actor.user_name}",
        )
