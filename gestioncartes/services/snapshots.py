"""Serialization of record snapshots stored in journal entries."""

from __future__ import annotations

import json
import uuid
from datetime import date, datetime
from typing import Any

from loguru import logger


def _json_default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    return str(value)


def dump_snapshot(value: dict[str, Any] | str | None) -> str | None:
    """Serialize a snapshot to text; strings are assumed already serialized."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, default=_json_default, ensure_ascii=False)


def load_snapshot(raw: str | None) -> dict[str, Any] | None:
    """
    Parse a stored snapshot.

    Returns None for missing, unparseable, or non-object payloads; callers
    decide whether that makes the entry unusable.
    """
    if raw is None or raw == "":
        return None
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as exc:
        logger.warning("Unparseable journal snapshot", error=str(exc))
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed
