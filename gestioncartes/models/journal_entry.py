"""Journal entry model: one immutable row per logged action."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from gestioncartes.db.base import Base, UUIDMixin, utcnow


class ActionType(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    BULK_IMPORT_ITEM = "BULK_IMPORT_ITEM"
    BULK_IMPORT_START = "BULK_IMPORT_START"
    BULK_IMPORT_END = "BULK_IMPORT_END"
    BULK_IMPORT_ERROR = "BULK_IMPORT_ERROR"
    BULK_IMPORT_CANCEL = "BULK_IMPORT_CANCEL"
    UNDO = "UNDO"
    LOGIN = "LOGIN"
    JOURNAL_PURGE = "JOURNAL_PURGE"


class JournalEntry(Base, UUIDMixin):
    """
    Append-only audit record.

    old_value/new_value hold serialized JSON snapshots of the target record,
    kept as text so they can be re-read whatever the live schema looks like.
    """

    __tablename__ = "journal"

    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False, default="System")
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, default="System")
    role: Mapped[str] = mapped_column(String(100), nullable=False, default="System")
    agency: Mapped[str | None] = mapped_column(String(255), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )
    action_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    action: Mapped[str | None] = mapped_column(String(255), nullable=True)
    target_table: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    target_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    import_batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    # set on UNDO entries: the entry that was compensated
    undone_entry_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
    )

    __table_args__ = (
        Index("ix_journal_action_type_timestamp", "action_type", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<JournalEntry(id={self.id}, action_type={self.action_type}, "
            f"target={self.target_table}:{self.target_id})>"
        )
