"""Exception Handlers für den Einsatztagebuch-Service.

Alle Fehler gehen im Format ``ErrorResponse`` raus. Fachliche Fehler aus
den Services (``AppException`` und Unterklassen) tragen Status und
Fehlercode selbst, Framework- und Datenbankfehler werden hier übersetzt.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.schemas.errors import ErrorCode, ErrorResponse, ValidationErrorDetail

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Basis-Exception für fachliche Fehler.

    Unterklassen legen ``status_code`` und den Standard-Fehlercode fest,
    Aufrufer übergeben nur Meldung und ggf. einen genaueren Fehlercode.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_error_code: ErrorCode = ErrorCode.VALIDATION_ERROR
    default_message: str = "Ungültige Anfrage"

    def __init__(
        self,
        message: str | None = None,
        error_code: ErrorCode | None = None,
        details: list[ValidationErrorDetail] | None = None,
    ):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.details = details
        super().__init__(self.message)


class BadRequestException(AppException):
    """Fachlich unzulässige Anfrage (z.B. Eintrag abgeschlossen, Datei fehlt)."""


class UnauthorizedException(AppException):
    """Keine Identität im Request."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_error_code = ErrorCode.UNAUTHORIZED
    default_message = "Nicht authentifiziert"


class NotFoundException(AppException):
    status_code = status.HTTP_404_NOT_FOUND
    default_error_code = ErrorCode.NOT_FOUND
    default_message = "Ressource nicht gefunden"


class ConflictException(AppException):
    """Gleichzeitige Änderung (z.B. Eintrag parallel überschrieben)."""

    status_code = status.HTTP_409_CONFLICT
    default_error_code = ErrorCode.CONFLICT
    default_message = "Konflikt mit paralleler Änderung"


def _get_request_id(request: Request) -> str | None:
    """Request-ID aus der Middleware, sonst aus dem Header."""
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")


def _error_response(
    request: Request,
    status_code: int,
    error_code: ErrorCode,
    message: str,
    details: list[ValidationErrorDetail] | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=error_code,
        message=message,
        details=details,
        request_id=_get_request_id(request),
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    logger.warning(
        f"{type(exc).__name__}: {exc.error_code.value} - {exc.message}",
        extra={"request_id": _get_request_id(request)},
    )
    return _error_response(request, exc.status_code, exc.error_code, exc.message, exc.details)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Validierungsfehler aus Body, Query und Pfad -> 400.

    Ungültige UUIDs im Pfad bekommen den eigenen Code ``invalid_uuid``.
    """
    errors = exc.errors()
    details = [
        ValidationErrorDetail(
            field=".".join(str(loc) for loc in error["loc"] if loc != "body") or "body",
            message=error["msg"],
            value=error.get("input"),
        )
        for error in errors
    ]
    logger.info(
        f"Validierungsfehler: {len(details)} Feld(er) in {request.method} {request.url.path}",
        extra={"request_id": _get_request_id(request)},
    )

    if any(e["loc"][:1] == ("path",) and e["type"] == "uuid_parsing" for e in errors):
        return _error_response(
            request,
            status.HTTP_400_BAD_REQUEST,
            ErrorCode.INVALID_UUID,
            "Ungültige ID im Pfad",
            details,
        )
    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        ErrorCode.VALIDATION_ERROR,
        "Validierungsfehler in der Anfrage",
        details,
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Constraint-Verletzung, z.B. doppelt vergebene laufende Nummer -> 409."""
    logger.warning(
        f"IntegrityError: {exc.orig}",
        extra={"request_id": _get_request_id(request)},
    )
    return _error_response(
        request,
        status.HTTP_409_CONFLICT,
        ErrorCode.DUPLICATE_ENTRY,
        "Konflikt beim Speichern, bitte erneut versuchen",
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        f"Datenbankfehler: {exc}",
        extra={"request_id": _get_request_id(request)},
        exc_info=True,
    )
    return _error_response(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        ErrorCode.DATABASE_ERROR,
        "Datenbankfehler. Bitte später erneut versuchen.",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unbehandelte Exception: {exc}",
        extra={"request_id": _get_request_id(request)},
        exc_info=True,
    )
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR,
        "Interner Serverfehler",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Registriert alle Exception-Handler bei der FastAPI-App."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
