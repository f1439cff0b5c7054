"""Test-Konfiguration und Fixtures für den Einsatztagebuch-Service."""

import os
import uuid
from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth import CurrentUser, create_access_token
from app.database import Base, get_db
from app.domain.etb import EtbKategorie
from app.main import app
from app.models.etb_attachment import EtbAttachmentRow
from app.models.etb_entry import EtbEntryRow
from app.services.attachment_storage_service import (
    LocalAttachmentStorage,
    get_attachment_storage,
)
from app.services.etb_service import EtbService

# Test-Datenbank-URL: SQLite in-memory, PostgreSQL per Umgebungsvariable
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite://")

USE_POSTGRES = TEST_DATABASE_URL.startswith("postgresql")


def _engine_kwargs() -> dict:
    if USE_POSTGRES:
        return {}
    # Eine gemeinsame Verbindung, sonst sieht jede Session eine leere In-Memory-DB
    return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}


@pytest.fixture
async def test_engine():
    """Engine pro Test (gleicher Event-Loop wie der Test)."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, **_engine_kwargs())
    yield engine
    await engine.dispose()


@pytest.fixture
async def setup_database(test_engine):
    """Erstellt die Datenbank-Tabellen vor jedem Test.

    HINWEIS: Nicht autouse=True, da Unit-Tests ohne DB laufen sollen.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session(setup_database) -> AsyncGenerator[AsyncSession, None]:
    """Stellt eine Test-DB-Session bereit."""
    session_maker = async_sessionmaker(
        setup_database,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_maker() as session:
        yield session


@pytest.fixture
def storage(tmp_path) -> LocalAttachmentStorage:
    """Anlagen-Speicher in einem temporären Verzeichnis."""
    return LocalAttachmentStorage(tmp_path / "uploads")


@pytest.fixture
def etb_service(db_session: AsyncSession, storage: LocalAttachmentStorage) -> EtbService:
    return EtbService(db_session, storage=storage)


@pytest.fixture
async def client(
    db_session: AsyncSession,
    storage: LocalAttachmentStorage,
) -> AsyncGenerator[AsyncClient, None]:
    """Async Test-Client mit überschriebener DB- und Speicher-Dependency."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        try:
            yield db_session
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_attachment_storage] = lambda: storage

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== IDENTITÄT ====================

TEST_USER = CurrentUser(id="user-1", name="Max Muster", role="Einsatzleiter")
OTHER_USER = CurrentUser(id="user-2", name="Erika Beispiel", role="Sichter")


def auth_headers(user: CurrentUser = TEST_USER) -> dict[str, str]:
    """Authorization-Header mit gültigem JWT für den Benutzer."""
    token = create_access_token(user.id, name=user.name, role=user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers() -> dict[str, str]:
    return auth_headers()


# ==================== FACTORIES ====================


def utc(year: int = 2025, month: int = 6, day: int = 1, hour: int = 12, minute: int = 0):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


class EtbEntryFactory:
    """Factory für ETB-Eintrag-Testdaten (direkt als Zeile)."""

    @staticmethod
    def create(
        laufende_nummer: int,
        id: uuid.UUID | None = None,
        kategorie: EtbKategorie = EtbKategorie.MELDUNG,
        inhalt: str = "Stromausfall im Abschnitt Nord",
        autor_id: str = "user-1",
        autor_name: str | None = "Max Muster",
        timestamp_ereignis: datetime | None = None,
        referenz_einsatz_id: str | None = None,
        status: str = "AKTIV",
        ist_abgeschlossen: bool = False,
        ueberschrieben_durch_id: uuid.UUID | None = None,
    ) -> EtbEntryRow:
        """Erstellt eine EtbEntryRow für Tests."""
        row = EtbEntryRow(
            id=id or uuid.uuid4(),
            laufende_nummer=laufende_nummer,
            timestamp_erstellung=datetime.now(timezone.utc),
            timestamp_ereignis=timestamp_ereignis or utc(),
            autor_id=autor_id,
            autor_name=autor_name,
            kategorie=kategorie.value,
            inhalt=inhalt,
            referenz_einsatz_id=referenz_einsatz_id,
            version=1,
            status=status,
            ist_abgeschlossen=ist_abgeschlossen,
            ueberschrieben_durch_id=ueberschrieben_durch_id,
        )
        row.anlagen = []
        return row


class EtbAttachmentFactory:
    """Factory für Anlagen-Testdaten."""

    @staticmethod
    def create(
        etb_entry_id: uuid.UUID,
        dateiname: str = "lagekarte.pdf",
        dateityp: str = "application/pdf",
        speicher_ort: str = "etb/1718012345678-a3f2b1c4-lagekarte.pdf",
    ) -> EtbAttachmentRow:
        now = datetime.now(timezone.utc)
        return EtbAttachmentRow(
            id=uuid.uuid4(),
            etb_entry_id=etb_entry_id,
            dateiname=dateiname,
            dateityp=dateityp,
            speicher_ort=speicher_ort,
            dateigroesse=1024,
            created_at=now,
            updated_at=now,
        )
