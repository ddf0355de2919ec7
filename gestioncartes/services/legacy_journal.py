"""Translation between legacy journal documents and canonical journal rows.

Older journal documents carry two spellings for the same fields
(TableName/TableAffectee, RecordId/LigneAffectee, ...) and French action
tags. Storage only knows the canonical columns; every translation happens
here, at the boundary.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from gestioncartes.models.journal_entry import ActionType, JournalEntry
from gestioncartes.services.snapshots import dump_snapshot

LEGACY_ACTION_TYPES: dict[str, ActionType] = {
    "CREATION_CARTE": ActionType.CREATE,
    "MODIFICATION_CARTE": ActionType.UPDATE,
    "SUPPRESSION_CARTE": ActionType.DELETE,
    "IMPORT_CARTE": ActionType.BULK_IMPORT_ITEM,
    "DEBUT_IMPORT": ActionType.BULK_IMPORT_START,
    "FIN_IMPORT": ActionType.BULK_IMPORT_END,
    "ERREUR_IMPORT": ActionType.BULK_IMPORT_ERROR,
    "ANNULATION_IMPORT": ActionType.BULK_IMPORT_CANCEL,
    "ANNULATION": ActionType.UNDO,
    "CONNEXION": ActionType.LOGIN,
}

_TABLE_ALIASES: dict[str, str] = {
    "cartes": "Cartes",
    "carte": "Cartes",
    "tablecartes": "Cartes",
    "utilisateurs": "Utilisateurs",
    "utilisateur": "Utilisateurs",
}

_BATCH_PREFIX = "Batch: "


def canonical_action_type(value: str) -> str:
    """Map a legacy or canonical action tag to its canonical value."""
    tag = value.strip().upper()
    legacy = LEGACY_ACTION_TYPES.get(tag)
    if legacy is not None:
        return legacy.value
    return tag


def canonical_table_name(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return _TABLE_ALIASES.get(stripped.casefold(), stripped)


def _first(document: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = document.get(key)
        if value is not None and value != "":
            return value
    return None


def _parse_timestamp(value: Any) -> datetime | None:
    # Extended JSON exports wrap dates as {"$date": ...}
    if isinstance(value, dict) and "$date" in value:
        value = value["$date"]
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def _snapshot_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        return dump_snapshot(value)
    return str(value)


def from_legacy_document(document: dict[str, Any]) -> dict[str, Any]:
    """Build JournalEntry column values from a legacy journal document."""
    raw_action_type = _first(document, "ActionType", "actionType") or "UNKNOWN"
    action_type = canonical_action_type(str(raw_action_type))

    target_id = _first(document, "RecordId", "LigneAffectee", "recordId")
    if isinstance(target_id, str) and target_id.startswith(_BATCH_PREFIX):
        target_id = target_id[len(_BATCH_PREFIX):]

    user_id = _first(document, "UtilisateurID", "UserId", "utilisateurId")
    user_name = _first(document, "NomUtilisateur", "nomUtilisateur", "Utilisateur") or "System"

    timestamp = _parse_timestamp(
        _first(document, "DateAction", "timestamp", "DateHeure", "created_at")
    )

    values: dict[str, Any] = {
        "user_id": str(user_id) if user_id is not None else None,
        "user_name": user_name,
        "full_name": _first(document, "NomComplet", "nomComplet") or user_name,
        "role": _first(document, "Role", "role") or "System",
        "agency": _first(document, "Agence", "agence"),
        "action_type": action_type,
        "action": _first(document, "Action"),
        "target_table": canonical_table_name(
            _first(document, "TableName", "TableAffectee", "tableName")
        ),
        "target_id": str(target_id) if target_id is not None else None,
        "old_value": _snapshot_text(_first(document, "OldValue", "oldValue")),
        "new_value": _snapshot_text(_first(document, "NewValue", "newValue")),
        "import_batch_id": _first(document, "ImportBatchID", "importBatchID"),
        "ip_address": _first(document, "AdresseIP", "IPUtilisateur", "ip", "IP"),
        "details": _first(document, "DetailsAction", "details", "Details"),
    }
    if timestamp is not None:
        values["timestamp"] = timestamp
    return values


def to_legacy_document(entry: JournalEntry) -> dict[str, Any]:
    """Render a journal row with both legacy spellings, for older consumers."""
    timestamp = entry.timestamp.isoformat() if entry.timestamp else None
    return {
        "_id": str(entry.id),
        "UtilisateurID": entry.user_id,
        "UserId": entry.user_id,
        "NomUtilisateur": entry.user_name,
        "NomComplet": entry.full_name,
        "Role": entry.role,
        "Agence": entry.agency,
        "DateAction": timestamp,
        "Action": entry.action,
        "ActionType": entry.action_type,
        "TableName": entry.target_table,
        "TableAffectee": entry.target_table,
        "RecordId": entry.target_id,
        "LigneAffectee": entry.target_id,
        "OldValue": entry.old_value,
        "NewValue": entry.new_value,
        "ImportBatchID": entry.import_batch_id,
        "AdresseIP": entry.ip_address,
        "IPUtilisateur": entry.ip_address,
        "DetailsAction": entry.details,
    }
