"""Role matching shared by every permission check."""

from __future__ import annotations

import unicodedata

from gestioncartes.models.carte import CARD_COLUMNS, DELIVERY_FIELDS

FULL_EDIT_ROLES = frozenset({"administrateur", "superviseur", "chef d'equipe"})
DELIVERY_EDIT_ROLES = frozenset({"operateur"})


def normalize_role(role: str | None) -> str:
    """Casefold, strip accents and unify apostrophes: "Chef d’Équipe" -> "chef d'equipe"."""
    if not role:
        return ""
    decomposed = unicodedata.normalize("NFKD", role.replace("’", "'"))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.casefold().split())


def has_role(role: str | None, expected: str) -> bool:
    return normalize_role(role) == normalize_role(expected)


def can_delete_cards(role: str | None) -> bool:
    return normalize_role(role) in FULL_EDIT_ROLES


def can_import_cards(role: str | None) -> bool:
    """Bulk import is reserved to the roles with full edit rights."""
    return normalize_role(role) in FULL_EDIT_ROLES


def editable_card_fields(role: str | None) -> tuple[str, ...]:
    """Card columns the role may write; empty when it may write none."""
    normalized = normalize_role(role)
    if normalized in FULL_EDIT_ROLES:
        return CARD_COLUMNS
    if normalized in DELIVERY_EDIT_ROLES:
        return DELIVERY_FIELDS
    return ()
