"""Authentifizierung fuer den Einsatztagebuch-Service.

Die eigentliche Anmeldung (Login, Sessions, Passwoerter) liegt beim
Auth-Modul von Bluelight Hub. Dieser Service prueft nur den ausgestellten
JWT bzw. den System-API-Key und legt die Identitaet des Aufrufers in
``request.state.user`` ab.

Schuetzt ALLE Endpoints ausser:
- /health (Health Check)
- /docs, /redoc, /openapi.json (nur Entwicklung aktiviert)
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.config import settings

logger = logging.getLogger(__name__)

# ── JWT Config ──
JWT_ALGORITHM = "HS256"
JWT_COOKIE_NAME = "bh_session"
API_KEY_HEADER_NAME = "x-api-key"


@dataclass(frozen=True)
class CurrentUser:
    """Identitaet des Aufrufers, wie sie vom Auth-Modul geliefert wird."""

    id: str
    name: str | None = None
    role: str | None = None
    is_system: bool = False


def system_user() -> CurrentUser:
    """Der explizit unterstuetzte System-Akteur (API-Key, Automatisierung)."""
    return CurrentUser(
        id=settings.system_actor_id,
        name=settings.system_actor_name,
        role=settings.system_actor_role,
        is_system=True,
    )


def create_access_token(user_id: str, name: str | None = None, role: str | None = None) -> str:
    """Erzeugt JWT Token mit Ablaufzeit."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "name": name,
        "role": role,
        "exp": now + timedelta(hours=settings.session_expire_hours),
        "iat": now,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict | None:
    """Dekodiert JWT Token. Gibt None zurueck bei ungueltigem/abgelaufenem Token."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None


def _extract_token(request: Request) -> str | None:
    """Holt den JWT aus dem Authorization-Header oder dem Session-Cookie."""
    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return request.cookies.get(JWT_COOKIE_NAME)


def resolve_user(request: Request) -> CurrentUser | None:
    """Ermittelt die Identitaet aus JWT oder API-Key. None = nicht authentifiziert."""
    token = _extract_token(request)
    if token:
        payload = decode_token(token)
        if payload and payload.get("sub"):
            return CurrentUser(
                id=str(payload["sub"]),
                name=payload.get("name"),
                role=payload.get("role"),
            )

    if settings.api_access_key:
        api_key = request.headers.get(API_KEY_HEADER_NAME)
        if api_key and secrets.compare_digest(api_key, settings.api_access_key):
            return system_user()

    return None


# ── Pfade die OHNE Auth erreichbar sein muessen ──
PUBLIC_PATHS = frozenset({
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
})


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware die JEDEN Request auf gueltige Authentifizierung prueft.

    Unterstuetzte Auth-Methoden (in dieser Reihenfolge):
    1. JWT (Authorization: Bearer oder Cookie bh_session)
    2. X-API-Key Header (System-Akteur)
    3. Sonst 401
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        # ── Oeffentliche Pfade durchlassen ──
        if path in PUBLIC_PATHS:
            return await call_next(request)

        user = resolve_user(request)
        if user is None:
            logger.info(f"Nicht authentifizierter Zugriff abgewiesen: {request.method} {path}")
            return JSONResponse(
                status_code=401,
                content={
                    "error": "unauthorized",
                    "message": "Nicht authentifiziert",
                    "details": None,
                    "request_id": request.headers.get("X-Request-ID"),
                },
            )

        request.state.user = user
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Fuegt Security-Headers zu jeder Response hinzu."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        # Anti-Clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Verhindert MIME-Type Sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # HSTS (nur HTTPS, 1 Jahr)
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        if "server" in response.headers:
            del response.headers["server"]

        return response
