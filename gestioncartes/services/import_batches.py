"""Import batch ledger: list bulk imports and cancel one as a whole."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from gestioncartes.db.errors import translate_store_errors
from gestioncartes.exceptions import BatchEmptyError
from gestioncartes.models import ActionType
from gestioncartes.repositories import carte_repo, journal_repo
from gestioncartes.repositories.journal_repo import BatchSummary
from gestioncartes.services.actor import Actor
from gestioncartes.services.journal_recorder import ActionRecorder


@dataclass
class BatchCancelResult:
    batch_id: str
    deleted_count: int


class ImportBatchLedger:
    """
    Groups journal entries by import batch.

    Cancelling a batch is one bulk delete preceded by a single
    BULK_IMPORT_CANCEL entry. The removed cards are not journaled one by
    one, so a cancellation cannot be undone.
    """

    def __init__(self, db: AsyncSession, recorder: ActionRecorder | None = None) -> None:
        self.db = db
        self.recorder = recorder or ActionRecorder()

    async def list_batches(self) -> list[BatchSummary]:
        return await journal_repo.group_by_batch(self.db)

    async def cancel_batch(
        self,
        batch_id: str,
        actor: Actor,
        ip_address: str | None = None,
    ) -> BatchCancelResult:
        async with translate_store_errors("cancel_import_batch"):
            async with self.db.begin():
                count = await carte_repo.count_by_batch(self.db, batch_id)
                if count == 0:
                    raise BatchEmptyError(
                        "No card found for this import batch",
                        details={"batch_id": batch_id},
                    )

                await self.recorder.record(
                    self.db,
                    ActionType.BULK_IMPORT_CANCEL,
                    actor,
                    target_table="Cartes",
                    target_id=batch_id,
                    import_batch_id=batch_id,
                    ip_address=ip_address,
                    action=f"Import batch {batch_id} cancelled",
                    details=f"Import cancelled - {count} cards deleted",
                )

                deleted = await carte_repo.delete_by_batch(self.db, batch_id)

        logger.warning(
            "Import batch cancelled",
            batch_id=batch_id,
            deleted_count=deleted,
            user_name=actor.user_name,
        )
        return BatchCancelResult(batch_id=batch_id, deleted_count=deleted)
