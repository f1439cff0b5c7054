"""Titel und Beschreibung zu ``inhalt`` zusammenfuehren, Kategorien vereinheitlichen.

- inhalt = "titel: beschreibung" (bzw. nur das vorhandene Feld)
- Freitext-Kategorien werden auf die festen Codes abgebildet
  (LAGEMELDUNG, ANFORDERUNG, AUTO_*, sonst MELDUNG)

Revision ID: 004
Revises: 003
Create Date: 2025-04-18
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "004"
down_revision = "003"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("etb_entry", sa.Column("inhalt", sa.Text(), nullable=True))

    op.execute(
        """
        UPDATE etb_entry
        SET inhalt = CASE
            WHEN titel IS NOT NULL AND beschreibung IS NOT NULL THEN titel || ': ' || beschreibung
            WHEN titel IS NULL AND beschreibung IS NOT NULL THEN beschreibung
            WHEN titel IS NOT NULL AND beschreibung IS NULL THEN titel
            ELSE ''
        END
        """
    )
    op.alter_column("etb_entry", "inhalt", nullable=False)

    # Reihenfolge der WHEN-Zweige ist relevant (speziell vor allgemein)
    op.execute(
        """
        UPDATE etb_entry
        SET kategorie = CASE
            WHEN lower(kategorie) LIKE '%lagemeld%' THEN 'LAGEMELDUNG'
            WHEN lower(kategorie) LIKE '%anforder%' THEN 'ANFORDERUNG'
            WHEN lower(kategorie) LIKE '%korrektur%' THEN 'KORREKTUR'
            WHEN lower(kategorie) LIKE '%auto%kr%fte%' THEN 'AUTO_KRAEFTE'
            WHEN lower(kategorie) LIKE '%auto%patient%' THEN 'AUTO_PATIENTEN'
            WHEN lower(kategorie) LIKE '%auto%tech%' THEN 'AUTO_TECHNISCH'
            WHEN lower(kategorie) LIKE '%auto%' THEN 'AUTO_SONSTIGES'
            ELSE 'MELDUNG'
        END
        """
    )

    op.drop_column("etb_entry", "titel")
    op.drop_column("etb_entry", "beschreibung")


def downgrade() -> None:
    op.add_column("etb_entry", sa.Column("titel", sa.String(255), nullable=True))
    op.add_column("etb_entry", sa.Column("beschreibung", sa.Text(), nullable=True))

    # Alles vor dem ersten Doppelpunkt gilt als Titel
    op.execute(
        """
        UPDATE etb_entry
        SET
            titel = CASE
                WHEN strpos(inhalt, ':') > 0 THEN left(inhalt, strpos(inhalt, ':') - 1)
                ELSE NULL
            END,
            beschreibung = CASE
                WHEN strpos(inhalt, ':') > 0 THEN ltrim(substr(inhalt, strpos(inhalt, ':') + 1))
                ELSE inhalt
            END
        """
    )
    # Kategorie-Codes bleiben erhalten, die urspruenglichen Freitexte sind nicht rekonstruierbar
    op.drop_column("etb_entry", "inhalt")
