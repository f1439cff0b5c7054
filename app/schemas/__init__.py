"""Pydantic Schemas für den Einsatztagebuch-Service."""

from app.schemas.errors import ErrorCode, ErrorResponse, ValidationErrorDetail
from app.schemas.etb import (
    EtbAttachmentResponse,
    EtbAutomaticEntryCreate,
    EtbEntryCreate,
    EtbEntryResponse,
    EtbEntrySupersede,
    EtbEntryUpdate,
    EtbFilter,
    EtbHistoryResponse,
)
from app.schemas.pagination import PaginatedResponse, PaginationMeta, PaginationParams
from app.schemas.validators import (
    Funkrufname,
    Inhalt,
    Kategorie,
    ReferenzId,
    SearchTerm,
)

__all__ = [
    # ETB
    "EtbEntryCreate",
    "EtbAutomaticEntryCreate",
    "EtbEntryUpdate",
    "EtbEntrySupersede",
    "EtbFilter",
    "EtbEntryResponse",
    "EtbAttachmentResponse",
    "EtbHistoryResponse",
    # Pagination
    "PaginationParams",
    "PaginationMeta",
    "PaginatedResponse",
    # Errors
    "ErrorCode",
    "ErrorResponse",
    "ValidationErrorDetail",
    # Validators
    "Inhalt",
    "Kategorie",
    "ReferenzId",
    "Funkrufname",
    "SearchTerm",
]
