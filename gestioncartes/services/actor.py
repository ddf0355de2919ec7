"""Actor attributed to every journaled action."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Actor:
    """Identity resolved by the auth service; user_id is None for system actions."""

    user_id: str | None
    user_name: str
    full_name: str
    role: str
    agency: str | None = None

    @classmethod
    def system(cls) -> Actor:
        return cls(user_id=None, user_name="System", full_name="System", role="System")

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> Actor:
        user_name = claims.get("username") or claims.get("sub") or "System"
        return cls(
            user_id=str(claims["sub"]) if claims.get("sub") is not None else None,
            user_name=user_name,
            full_name=claims.get("full_name") or user_name,
            role=claims.get("role") or "",
            agency=claims.get("agency"),
        )
