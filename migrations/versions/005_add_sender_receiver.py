"""Absender und Empfaenger (Funkrufnamen) fuer ETB-Eintraege.

Revision ID: 005
Revises: 004
Create Date: 2025-05-06
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "005"
down_revision = "004"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("etb_entry", sa.Column("sender", sa.String(100), nullable=True))
    op.add_column("etb_entry", sa.Column("receiver", sa.String(100), nullable=True))


def downgrade() -> None:
    op.drop_column("etb_entry", "receiver")
    op.drop_column("etb_entry", "sender")
