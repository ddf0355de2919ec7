"""Carte model."""

from typing import Any

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from gestioncartes.db.base import Base, TimestampMixin, UUIDMixin

# Snapshot / spreadsheet key -> model attribute
CARTE_FIELDS: dict[str, str] = {
    "LIEU D'ENROLEMENT": "lieu_enrolement",
    "SITE DE RETRAIT": "site_retrait",
    "RANGEMENT": "rangement",
    "NOM": "nom",
    "PRENOMS": "prenoms",
    "DATE DE NAISSANCE": "date_naissance",
    "LIEU NAISSANCE": "lieu_naissance",
    "CONTACT": "contact",
    "DELIVRANCE": "delivrance",
    "CONTACT DE RETRAIT": "contact_retrait",
    "DATE DE DELIVRANCE": "date_delivrance",
    "importBatchID": "import_batch_id",
}

# Fields an operator may change on an existing card
DELIVERY_FIELDS: tuple[str, ...] = ("DELIVRANCE", "CONTACT DE RETRAIT", "DATE DE DELIVRANCE")

# Spreadsheet columns, import_batch_id excluded
CARD_COLUMNS: tuple[str, ...] = tuple(key for key in CARTE_FIELDS if key != "importBatchID")


class Carte(Base, UUIDMixin, TimestampMixin):
    """
    A physical ID card waiting at, or delivered from, a pickup site.

    Every column except the system ones is free text as captured in the
    spreadsheets; an empty DELIVRANCE means the card has not been collected.
    """

    __tablename__ = "cartes"

    lieu_enrolement: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    site_retrait: Mapped[str] = mapped_column(String(255), nullable=False, default="", index=True)
    rangement: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    nom: Mapped[str] = mapped_column(String(255), nullable=False, default="", index=True)
    prenoms: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    date_naissance: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    lieu_naissance: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    contact: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    delivrance: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    contact_retrait: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    date_delivrance: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    import_batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_snapshot(self) -> dict[str, Any]:
        """Full field set keyed like the stored documents."""
        snapshot: dict[str, Any] = {"_id": str(self.id) if self.id else None}
        for key, attr in CARTE_FIELDS.items():
            snapshot[key] = getattr(self, attr)
        snapshot["created_at"] = self.created_at.isoformat() if self.created_at else None
        snapshot["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return snapshot

    def __repr__(self) -> str:
        return f"<Carte(id={self.id}, nom={self.nom}, prenoms={self.prenoms})>"
