"""Datenbank-Konfiguration und Session-Management."""

import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)

from app.config import settings


class Base(DeclarativeBase):
    """Basis-Klasse für alle SQLAlchemy Models."""

    pass


def _engine_options(database_url: str) -> dict[str, Any]:
    """Pool- und Verbindungsoptionen je nach Datenbank-Dialekt."""
    if not database_url.startswith("postgresql"):
        return {}
    return {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,       # Connections nach 5 Min recyceln
        "pool_timeout": 30,        # Max 30s auf freie Connection warten
        "connect_args": {
            "server_settings": {
                "statement_timeout": "15000",     # 15s max pro Statement
                "lock_timeout": "5000",           # 5s max auf Lock warten
                "idle_in_transaction_session_timeout": "30000",
            }
        },
    }


# Async Engine erstellen
engine = create_async_engine(
    settings.database_url,
    echo=settings.is_development,
    **_engine_options(settings.database_url),
)

# Session Factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency für FastAPI-Endpoints.

    Liefert eine Datenbank-Session und räumt nach dem Request auf.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Prüft die Datenbankverbindung und legt in der Entwicklung fehlende Tabellen an.

    Das Schema wird regulär über Alembic (``migrations/``) gepflegt.
    """
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        logger.info("init_db: Datenbankverbindung erfolgreich")

        if settings.auto_create_tables:
            # Models registrieren, bevor create_all laeuft
            import app.models  # noqa: F401

            await conn.run_sync(Base.metadata.create_all)
            logger.info("init_db: Tabellen angelegt (auto_create_tables)")
