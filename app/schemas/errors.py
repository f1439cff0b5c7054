"""Error Schemas für den Einsatztagebuch-Service."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Fehlercodes für den Einsatztagebuch-Service."""

    # Validierungsfehler (400)
    VALIDATION_ERROR = "validation_error"
    INVALID_UUID = "invalid_uuid"
    MISSING_FILE = "missing_file"
    FILE_TOO_LARGE = "file_too_large"
    ENTRY_CLOSED = "entry_closed"
    ENTRY_SUPERSEDED = "entry_superseded"
    ATTACHMENT_STORAGE_ERROR = "attachment_storage_error"

    # Authentifizierung (401)
    UNAUTHORIZED = "unauthorized"

    # Nicht gefunden (404)
    NOT_FOUND = "not_found"
    ETB_ENTRY_NOT_FOUND = "etb_entry_not_found"
    ETB_ATTACHMENT_NOT_FOUND = "etb_attachment_not_found"

    # Konflikt (409)
    DUPLICATE_ENTRY = "duplicate_entry"
    CONFLICT = "conflict"

    # Server-Fehler (500)
    INTERNAL_ERROR = "internal_error"

    # Service Unavailable (503)
    DATABASE_ERROR = "database_error"


class ValidationErrorDetail(BaseModel):
    """Detail eines Validierungsfehlers."""

    field: str = Field(description="Betroffenes Feld")
    message: str = Field(description="Fehlermeldung")
    value: Any | None = Field(default=None, description="Ungültiger Wert")


class ErrorResponse(BaseModel):
    """Standard-Fehler-Response."""

    error: ErrorCode = Field(description="Fehlercode")
    message: str = Field(description="Fehlermeldung")
    details: list[ValidationErrorDetail] | None = Field(
        default=None,
        description="Details bei Validierungsfehlern",
    )
    request_id: str | None = Field(
        default=None,
        description="Request-ID für Debugging",
    )

    model_config = {"json_schema_extra": {"examples": [
        {
            "error": "entry_closed",
            "message": "Abgeschlossene ETB-Einträge können nicht aktualisiert werden",
            "details": None,
            "request_id": "abc123",
        }
    ]}}
