"""FastAPI-Dependencies für Identität, Speicher und Services."""

import logging

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import UnauthorizedException
from app.auth import CurrentUser
from app.database import get_db
from app.services.attachment_storage_service import get_attachment_storage
from app.services.etb_service import EtbService

logger = logging.getLogger(__name__)


def get_current_user(request: Request) -> CurrentUser:
    """Identität des Aufrufers aus dem Request-Kontext.

    Wird von der AuthMiddleware gesetzt. Fehlt sie, wird der Request
    abgewiesen; es gibt keinen Platzhalter-Benutzer.
    """
    user = getattr(request.state, "user", None)
    if not isinstance(user, CurrentUser):
        logger.warning(f"Request ohne Identitaet: {request.method} {request.url.path}")
        raise UnauthorizedException()
    return user


def get_etb_service(
    db: AsyncSession = Depends(get_db),
    storage=Depends(get_attachment_storage),
) -> EtbService:
    return EtbService(db, storage=storage)
