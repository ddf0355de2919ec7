"""Services module."""

from gestioncartes.services.actor import Actor
from gestioncartes.services.cartes import CarteService, ImportResult
from gestioncartes.services.import_batches import BatchCancelResult, ImportBatchLedger
from gestioncartes.services.journal import JournalPage, JournalService, Pagination
from gestioncartes.services.journal_recorder import ActionRecorder
from gestioncartes.services.undo import UndoEngine, UndoOutcome

__all__ = [
    "ActionRecorder",
    "Actor",
    "BatchCancelResult",
    "CarteService",
    "ImportBatchLedger",
    "ImportResult",
    "JournalPage",
    "JournalService",
    "Pagination",
    "UndoEngine",
    "UndoOutcome",
]
