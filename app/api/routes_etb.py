"""API-Routen fuer das Einsatztagebuch (ETB)."""

import logging
from datetime import datetime
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_current_user, get_etb_service
from app.api.exception_handlers import BadRequestException
from app.auth import CurrentUser
from app.config import Limits, settings
from app.database import get_db
from app.schemas.errors import ErrorCode, ErrorResponse
from app.schemas.etb import (
    EtbAttachmentResponse,
    EtbEntryCreate,
    EtbEntryResponse,
    EtbEntrySupersede,
    EtbEntryUpdate,
    EtbFilter,
    EtbHistoryResponse,
)
from app.schemas.pagination import PaginatedResponse
from app.services.etb_service import EtbService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/etb", tags=["Einsatztagebuch"])

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


# ── Helper ───────────────────────────────────────

def _etb_filter(
    kategorie: str | None = Query(default=None, description="Kategorie (Code oder Label)"),
    referenz_einsatz_id: str | None = Query(default=None, alias="referenzEinsatzId"),
    referenz_patient_id: str | None = Query(default=None, alias="referenzPatientId"),
    referenz_einsatzmittel_id: str | None = Query(default=None, alias="referenzEinsatzmittelId"),
    autor_id: str | None = Query(default=None, alias="autorId"),
    von_zeitstempel: datetime | None = Query(default=None, alias="vonZeitstempel"),
    bis_zeitstempel: datetime | None = Query(default=None, alias="bisZeitstempel"),
    search: str | None = Query(default=None, max_length=Limits.SEARCH_MAX_LENGTH),
    include_ueberschrieben: bool = Query(default=False, alias="includeUeberschrieben"),
    page: int = Query(default=1, ge=1, description="Seitennummer"),
    limit: int = Query(
        default=Limits.PAGE_SIZE_DEFAULT,
        ge=1,
        le=Limits.PAGE_SIZE_MAX,
        description="Einträge pro Seite",
    ),
) -> EtbFilter:
    """Baut den Filter aus den Query-Parametern (Fehler -> 400)."""
    try:
        return EtbFilter(
            kategorie=kategorie,
            referenz_einsatz_id=referenz_einsatz_id,
            referenz_patient_id=referenz_patient_id,
            referenz_einsatzmittel_id=referenz_einsatzmittel_id,
            autor_id=autor_id,
            von_zeitstempel=von_zeitstempel,
            bis_zeitstempel=bis_zeitstempel,
            search=search,
            include_ueberschrieben=include_ueberschrieben,
            page=page,
            limit=limit,
        )
    except ValidationError as e:
        raise RequestValidationError(
            [{**error, "loc": ("query", *error["loc"])} for error in e.errors()]
        ) from e


UPLOAD_CHUNK_SIZE = 1024 * 1024


async def read_upload_limited(file: UploadFile, max_bytes: int) -> bytes:
    """Liest den Upload hoechstens bis ``max_bytes`` in den Speicher.

    Bekannte Groesse wird vorab geprueft, sonst wird in Bloecken gelesen und
    abgebrochen, sobald die Grenze ueberschritten ist.
    """
    if file.size is not None and file.size > max_bytes:
        raise _file_too_large(file.size, max_bytes)

    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(min(UPLOAD_CHUNK_SIZE, max_bytes + 1 - total))
        if not chunk:
            break
        chunks.append(chunk)
        total += len(chunk)
        if total > max_bytes:
            raise _file_too_large(total, max_bytes)
    return b"".join(chunks)


def _file_too_large(size: int, max_bytes: int) -> BadRequestException:
    logger.error(f"Upload abgelehnt: mindestens {size} Bytes, erlaubt {max_bytes}")
    return BadRequestException(
        message=f"Datei ist zu groß (maximal {max_bytes // (1024 * 1024)} MB)",
        error_code=ErrorCode.FILE_TOO_LARGE,
    )


# ── Eintraege ────────────────────────────────────

@router.post(
    "",
    response_model=EtbEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="ETB-Eintrag anlegen",
    responses=_ERROR_RESPONSES,
)
async def create_entry(
    data: EtbEntryCreate,
    user: CurrentUser = Depends(get_current_user),
    service: EtbService = Depends(get_etb_service),
    db: AsyncSession = Depends(get_db),
):
    """Legt einen neuen Eintrag an. Autor ist der angemeldete Benutzer."""
    entry = await service.create_entry(data, user)
    await db.commit()
    return EtbEntryResponse.from_domain(entry)


@router.get(
    "",
    response_model=PaginatedResponse[EtbEntryResponse],
    summary="ETB-Einträge auflisten",
)
async def list_entries(
    filters: EtbFilter = Depends(_etb_filter),
    service: EtbService = Depends(get_etb_service),
):
    """
    Listet Einträge paginiert, höchste laufende Nummer zuerst.

    Überschriebene Einträge nur mit ``includeUeberschrieben=true``.
    """
    items, total = await service.find_all(filters)
    return PaginatedResponse[EtbEntryResponse].create(
        items=[EtbEntryResponse.from_domain(e) for e in items],
        total=total,
        page=filters.page,
        limit=filters.limit,
    )


# ── Anlagen (vor /{entry_id}, damit "anlage" nicht als ID gilt) ──

@router.get(
    "/anlage/{attachment_id}",
    response_model=EtbAttachmentResponse,
    summary="Anlage abrufen",
    responses=_ERROR_RESPONSES,
)
async def get_attachment(
    attachment_id: UUID,
    service: EtbService = Depends(get_etb_service),
):
    attachment = await service.find_attachment(attachment_id)
    return EtbAttachmentResponse.from_domain(attachment)


@router.get(
    "/anlage/{attachment_id}/datei",
    summary="Datei einer Anlage herunterladen",
    responses=_ERROR_RESPONSES,
)
async def download_attachment(
    attachment_id: UUID,
    service: EtbService = Depends(get_etb_service),
):
    attachment, content = await service.load_attachment_content(attachment_id)
    return Response(
        content=content,
        media_type=attachment.dateityp,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(attachment.dateiname)}",
        },
    )


@router.get(
    "/{entry_id}",
    response_model=EtbEntryResponse,
    summary="ETB-Eintrag abrufen",
    responses=_ERROR_RESPONSES,
)
async def get_entry(
    entry_id: UUID,
    service: EtbService = Depends(get_etb_service),
):
    entry = await service.find_one(entry_id)
    return EtbEntryResponse.from_domain(entry)


@router.patch(
    "/{entry_id}",
    response_model=EtbEntryResponse,
    summary="ETB-Eintrag aktualisieren",
    responses=_ERROR_RESPONSES,
)
@router.put(
    "/{entry_id}",
    response_model=EtbEntryResponse,
    summary="ETB-Eintrag aktualisieren",
    responses=_ERROR_RESPONSES,
)
async def update_entry(
    entry_id: UUID,
    data: EtbEntryUpdate,
    service: EtbService = Depends(get_etb_service),
    db: AsyncSession = Depends(get_db),
):
    """Übernimmt nur die gesendeten Felder. Abgeschlossene Einträge -> 400."""
    entry = await service.update_entry(entry_id, data)
    await db.commit()
    return EtbEntryResponse.from_domain(entry)


@router.patch(
    "/{entry_id}/schliessen",
    response_model=EtbEntryResponse,
    summary="ETB-Eintrag abschließen",
    responses={**_ERROR_RESPONSES, 409: {"model": ErrorResponse}},
)
@router.patch(
    "/{entry_id}/close",
    response_model=EtbEntryResponse,
    include_in_schema=False,
)
async def close_entry(
    entry_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    service: EtbService = Depends(get_etb_service),
    db: AsyncSession = Depends(get_db),
):
    entry = await service.close_entry(entry_id, user.id)
    await db.commit()
    return EtbEntryResponse.from_domain(entry)


@router.post(
    "/{entry_id}/ueberschreiben",
    response_model=EtbEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="ETB-Eintrag überschreiben",
    responses={**_ERROR_RESPONSES, 409: {"model": ErrorResponse}},
)
async def supersede_entry(
    entry_id: UUID,
    data: EtbEntrySupersede,
    user: CurrentUser = Depends(get_current_user),
    service: EtbService = Depends(get_etb_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Ersetzt einen Eintrag durch einen neuen Eintrag (Korrektur).

    Das Original bleibt erhalten und wird als UEBERSCHRIEBEN markiert.
    """
    entry = await service.supersede_entry(entry_id, data, user)
    await db.commit()
    return EtbEntryResponse.from_domain(entry)


@router.get(
    "/{entry_id}/verlauf",
    response_model=EtbHistoryResponse,
    summary="Überschreib-Verlauf eines Eintrags",
    responses=_ERROR_RESPONSES,
)
async def get_history(
    entry_id: UUID,
    service: EtbService = Depends(get_etb_service),
):
    chain = await service.get_history(entry_id)
    current = chain[-1] if chain and chain[-1].is_active else None
    return EtbHistoryResponse(
        entry_id=entry_id,
        aktueller_eintrag_id=current.id if current else None,
        eintraege=[EtbEntryResponse.from_domain(e) for e in chain],
    )


@router.post(
    "/{entry_id}/anlage",
    response_model=EtbAttachmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Anlage hochladen",
    responses=_ERROR_RESPONSES,
)
async def upload_attachment(
    entry_id: UUID,
    file: UploadFile | None = File(default=None),
    beschreibung: str | None = Form(default=None, max_length=Limits.BESCHREIBUNG_MAX_LENGTH),
    service: EtbService = Depends(get_etb_service),
    db: AsyncSession = Depends(get_db),
):
    """Lädt eine Datei hoch (multipart ``file``, optional ``beschreibung``)."""
    if file is None:
        logger.error(f"Upload fuer ETB-Eintrag {entry_id} ohne Datei")
        raise BadRequestException(
            message="Keine Datei hochgeladen",
            error_code=ErrorCode.MISSING_FILE,
        )

    content = await read_upload_limited(file, settings.max_upload_size_mb * 1024 * 1024)
    attachment = await service.add_attachment(
        entry_id,
        filename=file.filename,
        content_type=file.content_type,
        content=content,
        beschreibung=beschreibung.strip() if beschreibung and beschreibung.strip() else None,
    )
    await db.commit()
    return EtbAttachmentResponse.from_domain(attachment)


@router.get(
    "/{entry_id}/anlagen",
    response_model=list[EtbAttachmentResponse],
    summary="Anlagen eines Eintrags",
    responses=_ERROR_RESPONSES,
)
async def list_attachments(
    entry_id: UUID,
    service: EtbService = Depends(get_etb_service),
):
    # Existenz zuerst pruefen, unbekannte Eintraege -> 404
    await service.find_one(entry_id)
    attachments = await service.find_attachments_by_entry(entry_id)
    return [EtbAttachmentResponse.from_domain(a) for a in attachments]
