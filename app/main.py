"""FastAPI Hauptanwendung für den Einsatztagebuch-Service."""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.api import register_exception_handlers
from app.api.routes_etb import router as etb_router
from app.auth import AuthMiddleware, SecurityHeadersMiddleware
from app.config import settings
from app.database import engine, init_db

APP_VERSION = "1.0.0"

# Logging konfigurieren
logging.basicConfig(
    level=logging.DEBUG if settings.is_development else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup und Shutdown Events."""
    logger.info("Starte Einsatztagebuch-Service...")
    await init_db()

    yield

    await engine.dispose()
    logger.info("Beende Einsatztagebuch-Service...")


# FastAPI App initialisieren
app = FastAPI(
    title="Bluelight Hub - Einsatztagebuch",
    description="Einsatztagebuch (ETB): Einträge, Abschluss, Überschreiben und Anlagen",
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

# ── Middleware-Stack (Reihenfolge: zuletzt registriert = zuerst ausgefuehrt) ──
# 1. CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 2. Auth-Middleware (JWT oder API-Key, sonst 401)
app.add_middleware(AuthMiddleware)

# 3. Security Headers (X-Frame-Options, HSTS, etc.)
app.add_middleware(SecurityHeadersMiddleware)


# Request-ID Middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Fügt eine eindeutige Request-ID zu jedem Request hinzu."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id

    return response


# Health-Check Endpoint
@app.get("/health", tags=["System"])
async def health_check():
    """Prüft, ob die Anwendung läuft."""
    return {
        "status": "healthy",
        "version": APP_VERSION,
        "environment": settings.environment,
    }


# Exception Handler registrieren
register_exception_handlers(app)

# API-Router
app.include_router(etb_router, prefix="/api")
