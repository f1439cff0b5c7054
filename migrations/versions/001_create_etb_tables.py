"""ETB-Tabellen anlegen (etb_entry, etb_attachment).

Revision ID: 001
Revises:
Create Date: 2025-03-10

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Eintraege (erste Fassung: Titel + Beschreibung, Kategorie als Freitext)
    op.create_table(
        "etb_entry",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "timestamp_erstellung",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("timestamp_ereignis", sa.DateTime(timezone=True), nullable=False),
        sa.Column("autor_id", sa.String(255), nullable=False),
        sa.Column("autor_name", sa.String(255)),
        sa.Column("autor_rolle", sa.String(100)),
        sa.Column("kategorie", sa.String(50), nullable=False),
        sa.Column("titel", sa.String(255)),
        sa.Column("beschreibung", sa.Text()),
        sa.Column("referenz_einsatz_id", sa.String(100)),
        sa.Column("referenz_patient_id", sa.String(100)),
        sa.Column("referenz_einsatzmittel_id", sa.String(100)),
        sa.Column("system_quelle", sa.String(100)),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "ist_abgeschlossen", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("timestamp_abschluss", sa.DateTime(timezone=True)),
        sa.Column("abgeschlossen_von", sa.String(255)),
    )
    op.create_index("ix_etb_entry_timestamp_ereignis", "etb_entry", ["timestamp_ereignis"])
    op.create_index("ix_etb_entry_autor_id", "etb_entry", ["autor_id"])
    op.create_index("ix_etb_entry_kategorie", "etb_entry", ["kategorie"])
    op.create_index("ix_etb_entry_referenz_einsatz_id", "etb_entry", ["referenz_einsatz_id"])

    # Anlagen
    op.create_table(
        "etb_attachment",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "etb_entry_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("etb_entry.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("dateiname", sa.String(255), nullable=False),
        sa.Column("dateityp", sa.String(100), nullable=False),
        sa.Column("speicher_ort", sa.Text(), nullable=False),
        sa.Column("dateigroesse", sa.Integer()),
        sa.Column("beschreibung", sa.Text()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_etb_attachment_etb_entry_id", "etb_attachment", ["etb_entry_id"])


def downgrade() -> None:
    op.drop_index("ix_etb_attachment_etb_entry_id", table_name="etb_attachment")
    op.drop_table("etb_attachment")

    op.drop_index("ix_etb_entry_referenz_einsatz_id", table_name="etb_entry")
    op.drop_index("ix_etb_entry_kategorie", table_name="etb_entry")
    op.drop_index("ix_etb_entry_autor_id", table_name="etb_entry")
    op.drop_index("ix_etb_entry_timestamp_ereignis", table_name="etb_entry")
    op.drop_table("etb_entry")
