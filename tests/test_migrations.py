"""Tests für die Alembic-Migrationen (nur gegen PostgreSQL).

Laufen nur, wenn ``TEST_DATABASE_URL`` auf eine PostgreSQL-Datenbank zeigt.
Die Tests sind synchron, weil ``migrations/env.py`` selbst ``asyncio.run``
aufruft.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from app.config import settings
from tests.conftest import TEST_DATABASE_URL, USE_POSTGRES

pytestmark = pytest.mark.skipif(
    not USE_POSTGRES, reason="Migrationen brauchen PostgreSQL (TEST_DATABASE_URL)"
)

ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def alembic_config(monkeypatch):
    monkeypatch.setattr(settings, "database_url", TEST_DATABASE_URL)
    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))

    asyncio.run(_execute("DROP TABLE IF EXISTS etb_attachment, etb_entry, alembic_version"))
    yield cfg
    command.downgrade(cfg, "base")


async def _execute(statement: str, params: list[dict] | None = None) -> None:
    engine = create_async_engine(TEST_DATABASE_URL)
    try:
        async with engine.begin() as conn:
            await conn.execute(text(statement), params)
    finally:
        await engine.dispose()


async def _fetch(statement: str) -> list:
    engine = create_async_engine(TEST_DATABASE_URL)
    try:
        async with engine.connect() as conn:
            return list((await conn.execute(text(statement))).all())
    finally:
        await engine.dispose()


def _seed_legacy_entries() -> None:
    """Drei Eintraege im Schema von 001 (Titel/Beschreibung, Freitext-Kategorie)."""
    base = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)
    rows = [
        # nicht in Erstellungsreihenfolge eingefuegt
        {
            "created": base + timedelta(minutes=20),
            "kategorie": "Sonstiges",
            "titel": None,
            "beschreibung": "Lage ruhig",
        },
        {
            "created": base,
            "kategorie": "Lagemeldung",
            "titel": "Stromausfall",
            "beschreibung": "Ortsteil Nord betroffen",
        },
        {
            "created": base + timedelta(minutes=10),
            "kategorie": "Automatisch: Kräfte",
            "titel": "RTW 1/83-1",
            "beschreibung": None,
        },
    ]
    asyncio.run(_execute(
        """
        INSERT INTO etb_entry
            (id, timestamp_erstellung, timestamp_ereignis, autor_id, kategorie, titel, beschreibung)
        VALUES
            (:id, :created, :created, 'user-1', :kategorie, :titel, :beschreibung)
        """,
        [{"id": uuid.uuid4(), **row} for row in rows],
    ))


class TestMigrations:
    """Upgrade bestehender Daten bis zum aktuellen Schema."""

    def test_upgrade_backfills_numbers_and_merges_inhalt(self, alembic_config):
        command.upgrade(alembic_config, "001")
        _seed_legacy_entries()

        command.upgrade(alembic_config, "head")

        rows = asyncio.run(_fetch(
            "SELECT laufende_nummer, inhalt, kategorie, status "
            "FROM etb_entry ORDER BY laufende_nummer"
        ))
        assert [tuple(r) for r in rows] == [
            (1, "Stromausfall: Ortsteil Nord betroffen", "LAGEMELDUNG", "AKTIV"),
            (2, "RTW 1/83-1", "AUTO_KRAEFTE", "AKTIV"),
            (3, "Lage ruhig", "MELDUNG", "AKTIV"),
        ]

    def test_upgrade_and_downgrade_empty_database(self, alembic_config):
        command.upgrade(alembic_config, "head")
        command.downgrade(alembic_config, "base")
        command.upgrade(alembic_config, "head")

        tables = asyncio.run(_fetch(
            "SELECT tablename FROM pg_tables WHERE schemaname = 'public' "
            "AND tablename LIKE 'etb_%' ORDER BY tablename"
        ))
        assert [t[0] for t in tables] == ["etb_attachment", "etb_entry"]
