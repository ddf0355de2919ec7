"""Card mutations, each journaled in the same transaction."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from gestioncartes.db.base import utcnow
from gestioncartes.db.errors import translate_store_errors
from gestioncartes.exceptions import (
    AuthorizationError,
    CarteNotFoundError,
    GestionCartesException,
)
from gestioncartes.models import CARTE_FIELDS, ActionType, Carte
from gestioncartes.models.carte import CARD_COLUMNS
from gestioncartes.repositories import carte_repo
from gestioncartes.services.actor import Actor
from gestioncartes.services.journal_recorder import ActionRecorder
from gestioncartes.services.roles import (
    can_delete_cards,
    can_import_cards,
    editable_card_fields,
)

TABLE_NAME = "Cartes"


@dataclass
class ImportResult:
    batch_id: str
    total_processed: int = 0
    imported: int = 0
    duplicates: int = 0
    errors: int = 0
    error_details: list[str] = field(default_factory=list)


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _card_values(data: dict[str, Any], keys: tuple[str, ...]) -> dict[str, str]:
    return {CARTE_FIELDS[key]: _clean(data.get(key)) for key in keys}


class CarteService:
    """Create, update, delete and bulk-import cards."""

    def __init__(self, db: AsyncSession, recorder: ActionRecorder | None = None) -> None:
        self.db = db
        self.recorder = recorder or ActionRecorder()

    async def create(
        self,
        data: dict[str, Any],
        actor: Actor,
        ip_address: str | None = None,
    ) -> Carte:
        if not editable_card_fields(actor.role):
            raise AuthorizationError("Role not allowed to create cards", details={"role": actor.role})

        async with translate_store_errors("create_carte"):
            async with self.db.begin():
                carte = await carte_repo.add_carte(self.db, Carte(**_card_values(data, CARD_COLUMNS)))
                await self.recorder.record(
                    self.db,
                    ActionType.CREATE,
                    actor,
                    target_table=TABLE_NAME,
                    target_id=carte.id,
                    new_value=carte.to_snapshot(),
                    ip_address=ip_address,
                    details=f"New card - {carte.nom} {carte.prenoms}",
                )

        logger.info("Card created", carte_id=str(carte.id), user_name=actor.user_name)
        return carte

    async def update(
        self,
        carte_id: str | uuid.UUID,
        data: dict[str, Any],
        actor: Actor,
        ip_address: str | None = None,
    ) -> Carte:
        """Apply the fields of `data` the actor's role may write; other keys are ignored."""
        allowed = editable_card_fields(actor.role)
        if not allowed:
            raise AuthorizationError("Role not allowed to edit cards", details={"role": actor.role})

        async with translate_store_errors("update_carte"):
            async with self.db.begin():
                carte = await carte_repo.get_carte(self.db, carte_id, for_update=True)
                if carte is None:
                    raise CarteNotFoundError("Card not found", details={"carte_id": str(carte_id)})

                before = carte.to_snapshot()
                for key in allowed:
                    if key in data:
                        setattr(carte, CARTE_FIELDS[key], _clean(data[key]))
                carte.updated_at = utcnow()
                await self.db.flush()

                await self.recorder.record(
                    self.db,
                    ActionType.UPDATE,
                    actor,
                    target_table=TABLE_NAME,
                    target_id=carte.id,
                    old_value=before,
                    new_value=carte.to_snapshot(),
                    ip_address=ip_address,
                    details=f"Card {carte.id} updated - {carte.nom} {carte.prenoms}",
                )

        logger.info("Card updated", carte_id=str(carte.id), user_name=actor.user_name)
        return carte

    async def delete(
        self,
        carte_id: str | uuid.UUID,
        actor: Actor,
        ip_address: str | None = None,
    ) -> None:
        if not can_delete_cards(actor.role):
            raise AuthorizationError("Role not allowed to delete cards", details={"role": actor.role})

        async with translate_store_errors("delete_carte"):
            async with self.db.begin():
                carte = await carte_repo.get_carte(self.db, carte_id, for_update=True)
                if carte is None:
                    raise CarteNotFoundError("Card not found", details={"carte_id": str(carte_id)})

                before = carte.to_snapshot()
                await carte_repo.delete_carte(self.db, carte)
                await self.recorder.record(
                    self.db,
                    ActionType.DELETE,
                    actor,
                    target_table=TABLE_NAME,
                    target_id=before["_id"],
                    old_value=before,
                    ip_address=ip_address,
                    details=f"Card {before['_id']} deleted - {before['NOM']} {before['PRENOMS']}",
                )

        logger.info("Card deleted", carte_id=str(carte_id), user_name=actor.user_name)

    async def import_rows(
        self,
        rows: list[dict[str, Any]],
        actor: Actor,
        ip_address: str | None = None,
        source_name: str | None = None,
    ) -> ImportResult:
        """
        Insert parsed spreadsheet rows as one batch.

        Start/end/error markers are journaled best-effort; each inserted
        card gets a BULK_IMPORT_ITEM entry inside the import transaction.
        Rows without NOM or PRENOMS are rejected, and rows whose
        (NOM, PRENOMS) already exists are skipped as duplicates.
        """
        if not can_import_cards(actor.role):
            raise AuthorizationError("Role not allowed to import cards", details={"role": actor.role})

        batch_id = str(uuid.uuid4())
        result = ImportResult(batch_id=batch_id)
        await self.recorder.record_best_effort(
            ActionType.BULK_IMPORT_START,
            actor,
            target_table=TABLE_NAME,
            import_batch_id=batch_id,
            ip_address=ip_address,
            details=f"Import started: {source_name or 'rows'} ({len(rows)} rows)",
        )

        try:
            async with translate_store_errors("import_cartes"):
                async with self.db.begin():
                    for line, row in enumerate(rows, start=1):
                        values = _card_values(row, CARD_COLUMNS)
                        if not any(values.values()):
                            continue
                        result.total_processed += 1

                        if not values["nom"] or not values["prenoms"]:
                            result.errors += 1
                            result.error_details.append(f"Row {line}: NOM and PRENOMS are required")
                            continue

                        if await carte_repo.exists_by_name(self.db, values["nom"], values["prenoms"]):
                            result.duplicates += 1
                            continue

                        carte = await carte_repo.add_carte(
                            self.db, Carte(**values, import_batch_id=batch_id)
                        )
                        await self.recorder.record(
                            self.db,
                            ActionType.BULK_IMPORT_ITEM,
                            actor,
                            target_table=TABLE_NAME,
                            target_id=carte.id,
                            new_value=carte.to_snapshot(),
                            import_batch_id=batch_id,
                            ip_address=ip_address,
                            details=f"Imported card: {carte.nom} {carte.prenoms}",
                        )
                        result.imported += 1
        except GestionCartesException as exc:
            await self.recorder.record_best_effort(
                ActionType.BULK_IMPORT_ERROR,
                actor,
                target_table=TABLE_NAME,
                import_batch_id=batch_id,
                ip_address=ip_address,
                details=f"Import failed: {exc.message}",
            )
            raise

        await self.recorder.record_best_effort(
            ActionType.BULK_IMPORT_END,
            actor,
            target_table=TABLE_NAME,
            import_batch_id=batch_id,
            ip_address=ip_address,
            details=(
                f"Import finished: {result.imported} imported, "
                f"{result.duplicates} duplicates, {result.errors} errors"
            ),
        )
        logger.info(
            "Import finished",
            batch_id=batch_id,
            imported=result.imported,
            duplicates=result.duplicates,
            errors=result.errors,
        )
        return result
