"""Database models."""

from gestioncartes.models.carte import CARTE_FIELDS, Carte
from gestioncartes.models.journal_entry import ActionType, JournalEntry

__all__ = [
    "ActionType",
    "CARTE_FIELDS",
    "Carte",
    "JournalEntry",
]
