"""Status und Ueberschreiben-Felder fuer ETB-Eintraege.

``ueberschrieben_durch_id`` verweist auf den Nachfolger-Eintrag. Die
Beziehung wird nur in der Anwendung gepflegt, es gibt keinen Fremdschluessel.

Revision ID: 003
Revises: 002
Create Date: 2025-04-02
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "003"
down_revision = "002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "etb_entry",
        sa.Column("status", sa.String(20), nullable=False, server_default="AKTIV"),
    )
    op.add_column(
        "etb_entry",
        sa.Column("ueberschrieben_durch_id", postgresql.UUID(as_uuid=True), nullable=True),
    )
    op.add_column(
        "etb_entry",
        sa.Column("timestamp_ueberschrieben", sa.DateTime(timezone=True), nullable=True),
    )
    op.add_column(
        "etb_entry",
        sa.Column("ueberschrieben_von", sa.String(255), nullable=True),
    )
    op.create_index("ix_etb_entry_status", "etb_entry", ["status"])


def downgrade() -> None:
    op.drop_index("ix_etb_entry_status", table_name="etb_entry")
    op.drop_column("etb_entry", "ueberschrieben_von")
    op.drop_column("etb_entry", "timestamp_ueberschrieben")
    op.drop_column("etb_entry", "ueberschrieben_durch_id")
    op.drop_column("etb_entry", "status")
