"""Initial schema: cartes and journal

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "cartes",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("lieu_enrolement", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("site_retrait", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("rangement", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("nom", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("prenoms", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("date_naissance", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("lieu_naissance", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("contact", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("delivrance", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("contact_retrait", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("date_delivrance", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("import_batch_id", sa.String(length=64), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_cartes_import_batch_id"), "cartes", ["import_batch_id"], unique=False)
    op.create_index(op.f("ix_cartes_nom"), "cartes", ["nom"], unique=False)
    op.create_index(op.f("ix_cartes_site_retrait"), "cartes", ["site_retrait"], unique=False)

    op.create_table(
        "journal",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("user_name", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=100), nullable=False),
        sa.Column("agency", sa.String(length=255), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("action_type", sa.String(length=50), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=True),
        sa.Column("target_table", sa.String(length=64), nullable=True),
        sa.Column("target_id", sa.String(length=255), nullable=True),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("import_batch_id", sa.String(length=64), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("undone_entry_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_journal_user_id"), "journal", ["user_id"], unique=False)
    op.create_index(op.f("ix_journal_timestamp"), "journal", ["timestamp"], unique=False)
    op.create_index(op.f("ix_journal_action_type"), "journal", ["action_type"], unique=False)
    op.create_index(op.f("ix_journal_target_table"), "journal", ["target_table"], unique=False)
    op.create_index(op.f("ix_journal_import_batch_id"), "journal", ["import_batch_id"], unique=False)
    op.create_index(op.f("ix_journal_undone_entry_id"), "journal", ["undone_entry_id"], unique=False)
    op.create_index(
        "ix_journal_action_type_timestamp",
        "journal",
        ["action_type", "timestamp"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_journal_action_type_timestamp", table_name="journal")
    op.drop_index(op.f("ix_journal_undone_entry_id"), table_name="journal")
    op.drop_index(op.f("ix_journal_import_batch_id"), table_name="journal")
    op.drop_index(op.f("ix_journal_target_table"), table_name="journal")
    op.drop_index(op.f("ix_journal_action_type"), table_name="journal")
    op.drop_index(op.f("ix_journal_timestamp"), table_name="journal")
    op.drop_index(op.f("ix_journal_user_id"), table_name="journal")
    op.drop_table("journal")

    op.drop_index(op.f("ix_cartes_site_retrait"), table_name="cartes")
    op.drop_index(op.f("ix_cartes_nom"), table_name="cartes")
    op.drop_index(op.f("ix_cartes_import_batch_id"), table_name="cartes")
    op.drop_table("cartes")
