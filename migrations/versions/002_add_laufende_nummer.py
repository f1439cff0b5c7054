"""Laufende Nummer fuer ETB-Eintraege.

Bestehende Eintraege werden in Reihenfolge der Erstellung durchnummeriert.

Revision ID: 002
Revises: 001
Create Date: 2025-03-24
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("etb_entry", sa.Column("laufende_nummer", sa.Integer(), nullable=True))

    # Backfill nach Erstellungszeitpunkt (bei Gleichstand nach ID)
    op.execute(
        """
        UPDATE etb_entry
        SET laufende_nummer = nummeriert.nr
        FROM (
            SELECT id, ROW_NUMBER() OVER (ORDER BY timestamp_erstellung, id) AS nr
            FROM etb_entry
        ) AS nummeriert
        WHERE etb_entry.id = nummeriert.id
        """
    )

    op.alter_column("etb_entry", "laufende_nummer", nullable=False)
    op.create_unique_constraint(
        "uq_etb_entry_laufende_nummer", "etb_entry", ["laufende_nummer"]
    )


def downgrade() -> None:
    op.drop_constraint("uq_etb_entry_laufende_nummer", "etb_entry", type_="unique")
    op.drop_column("etb_entry", "laufende_nummer")
