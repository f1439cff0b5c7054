"""ETB Service - Lebenszyklus der Einsatztagebuch-Eintraege.

Regeln:
- ``laufende_nummer`` = max + 1 (ab 1), eindeutig ueber alle Eintraege.
- Abgeschlossene Eintraege sind unveraenderlich (kein Update, kein erneutes
  Abschliessen, kein Ueberschreiben, keine neuen Anlagen).
- Ueberschreiben legt einen Nachfolger an und markiert das Original als
  UEBERSCHRIEBEN, beides in derselben Transaktion.
"""

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import func, or_, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.exception_handlers import (
    BadRequestException,
    ConflictException,
    NotFoundException,
)
from app.auth import CurrentUser, system_user
from app.config import settings
from app.domain.etb import (
    EtbAttachment,
    EtbEntry,
    EtbEntryStatus,
    find_chain_root,
    resolve_supersede_chain,
)
from app.models.etb_attachment import EtbAttachmentRow
from app.models.etb_entry import EtbEntryRow
from app.models.mappers import attachment_from_row, entry_from_row
from app.schemas.errors import ErrorCode
from app.schemas.etb import (
    EtbAutomaticEntryCreate,
    EtbEntryCreate,
    EtbEntrySupersede,
    EtbEntryUpdate,
    EtbFilter,
)
from app.services.attachment_storage_service import AttachmentStorageError

logger = logging.getLogger(__name__)

# Schluessel fuer pg_advisory_xact_lock beim Vergeben der laufenden Nummer
LAUFENDE_NUMMER_LOCK_KEY = 4_711_001

_REFERENCE_FIELDS = (
    "referenz_einsatz_id",
    "referenz_patient_id",
    "referenz_einsatzmittel_id",
    "sender",
    "receiver",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EtbService:
    """Service fuer das Einsatztagebuch."""

    def __init__(self, db: AsyncSession, storage=None):
        self.db = db
        self.storage = storage

    # ── Hilfsfunktionen ─────────────────────────────

    async def _load_row(self, entry_id: uuid.UUID) -> EtbEntryRow | None:
        """Laedt einen Eintrag inkl. Anlagen, immer frisch aus der Datenbank."""
        result = await self.db.execute(
            select(EtbEntryRow)
            .options(selectinload(EtbEntryRow.anlagen))
            .where(EtbEntryRow.id == entry_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _get_row_or_404(self, entry_id: uuid.UUID) -> EtbEntryRow:
        row = await self._load_row(entry_id)
        if row is None:
            logger.error(f"ETB-Eintrag {entry_id} nicht gefunden")
            raise NotFoundException(
                message=f"ETB-Eintrag mit ID {entry_id} nicht gefunden",
                error_code=ErrorCode.ETB_ENTRY_NOT_FOUND,
            )
        return row

    @staticmethod
    def _ensure_not_closed(row: EtbEntryRow, action: str) -> None:
        if row.ist_abgeschlossen:
            logger.error(
                f"ETB-Eintrag #{row.laufende_nummer} ({row.id}) ist abgeschlossen, "
                f"{action} abgelehnt"
            )
            raise BadRequestException(
                message=f"Abgeschlossene ETB-Einträge können nicht {action} werden",
                error_code=ErrorCode.ENTRY_CLOSED,
            )

    @staticmethod
    def _ensure_not_superseded(row: EtbEntryRow, action: str) -> None:
        if row.status == EtbEntryStatus.UEBERSCHRIEBEN.value:
            logger.error(
                f"ETB-Eintrag #{row.laufende_nummer} ({row.id}) wurde bereits "
                f"ueberschrieben, {action} abgelehnt"
            )
            raise BadRequestException(
                message=f"Überschriebene ETB-Einträge können nicht {action} werden",
                error_code=ErrorCode.ENTRY_SUPERSEDED,
            )

    async def _next_laufende_nummer(self) -> int:
        """Naechste laufende Nummer (max + 1).

        Auf PostgreSQL wird die Vergabe per Advisory-Lock bis zum Ende der
        Transaktion serialisiert. Der UNIQUE-Constraint auf der Spalte faengt
        alles Weitere ab (IntegrityError -> 409).
        """
        if self.db.get_bind().dialect.name == "postgresql":
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": LAUFENDE_NUMMER_LOCK_KEY},
            )
        result = await self.db.execute(
            select(func.coalesce(func.max(EtbEntryRow.laufende_nummer), 0))
        )
        return result.scalar_one() + 1

    async def _insert_entry(self, values: dict) -> EtbEntryRow:
        now = _utcnow()
        row = EtbEntryRow(
            id=uuid.uuid4(),
            laufende_nummer=await self._next_laufende_nummer(),
            timestamp_erstellung=now,
            version=1,
            status=EtbEntryStatus.AKTIV.value,
            ist_abgeschlossen=False,
            **values,
        )
        # Leere Collection setzen, damit kein Lazy-Load in der Async-Session noetig ist
        row.anlagen = []
        self.db.add(row)
        await self.db.flush()
        return row

    async def _superseded_ids(self, entry_id: uuid.UUID) -> list[uuid.UUID]:
        """IDs der Eintraege, die durch ``entry_id`` ersetzt wurden."""
        result = await self.db.execute(
            select(EtbEntryRow.id)
            .where(EtbEntryRow.ueberschrieben_durch_id == entry_id)
            .order_by(EtbEntryRow.laufende_nummer)
        )
        return list(result.scalars().all())

    # ── Anlegen ─────────────────────────────────────

    async def create_entry(
        self,
        data: EtbEntryCreate,
        actor: CurrentUser,
        system_quelle: str | None = None,
    ) -> EtbEntry:
        """Legt einen neuen ETB-Eintrag an (Status AKTIV, Version 1)."""
        row = await self._insert_entry({
            "timestamp_ereignis": data.timestamp_ereignis,
            "autor_id": actor.id,
            "autor_name": actor.name or actor.id,
            "autor_rolle": actor.role,
            "kategorie": data.kategorie.value,
            "inhalt": data.inhalt,
            "system_quelle": system_quelle,
            **{name: getattr(data, name) for name in _REFERENCE_FIELDS},
        })

        logger.info(
            f"ETB-Eintrag erstellt: #{row.laufende_nummer} ({row.id}) "
            f"Kategorie={row.kategorie} Autor={row.autor_id}"
        )
        return entry_from_row(row)

    async def create_automatic_entry(self, data: EtbAutomaticEntryCreate) -> EtbEntry:
        """Legt einen Eintrag im Namen des System-Akteurs an (z.B. aus anderen Modulen)."""
        entry = await self.create_entry(data, system_user(), system_quelle=data.system_quelle)
        logger.info(f"Automatischer ETB-Eintrag #{entry.laufende_nummer} aus {data.system_quelle}")
        return entry

    # ── Lesen ───────────────────────────────────────

    async def find_all(self, filters: EtbFilter) -> tuple[list[EtbEntry], int]:
        """Listet Eintraege gefiltert und paginiert, neueste (hoechste Nummer) zuerst."""
        conditions = []

        if not filters.include_ueberschrieben:
            conditions.append(EtbEntryRow.status == EtbEntryStatus.AKTIV.value)
        if filters.kategorie is not None:
            conditions.append(EtbEntryRow.kategorie == filters.kategorie.value)
        if filters.referenz_einsatz_id:
            conditions.append(EtbEntryRow.referenz_einsatz_id == filters.referenz_einsatz_id)
        if filters.referenz_patient_id:
            conditions.append(EtbEntryRow.referenz_patient_id == filters.referenz_patient_id)
        if filters.referenz_einsatzmittel_id:
            conditions.append(
                EtbEntryRow.referenz_einsatzmittel_id == filters.referenz_einsatzmittel_id
            )
        if filters.autor_id:
            conditions.append(EtbEntryRow.autor_id == filters.autor_id)
        if filters.von_zeitstempel is not None:
            conditions.append(EtbEntryRow.timestamp_ereignis >= filters.von_zeitstempel)
        if filters.bis_zeitstempel is not None:
            conditions.append(EtbEntryRow.timestamp_ereignis <= filters.bis_zeitstempel)
        if filters.search:
            # % und _ im Suchbegriff sind normale Zeichen
            conditions.append(
                or_(
                    EtbEntryRow.inhalt.icontains(filters.search, autoescape=True),
                    EtbEntryRow.autor_name.icontains(filters.search, autoescape=True),
                )
            )

        total = (
            await self.db.execute(
                select(func.count()).select_from(EtbEntryRow).where(*conditions)
            )
        ).scalar_one()

        result = await self.db.execute(
            select(EtbEntryRow)
            .options(selectinload(EtbEntryRow.anlagen))
            .where(*conditions)
            .order_by(EtbEntryRow.laufende_nummer.desc())
            .offset(filters.offset)
            .limit(filters.limit)
        )
        items = [entry_from_row(row) for row in result.scalars().all()]
        return items, total

    async def find_one(self, entry_id: uuid.UUID) -> EtbEntry:
        """Holt einen Eintrag inkl. Anlagen. NotFound, wenn nicht vorhanden."""
        row = await self._get_row_or_404(entry_id)
        entry = entry_from_row(row)
        entry.ueberschriebene_eintraege = await self._superseded_ids(entry.id)
        return entry

    async def get_history(self, entry_id: uuid.UUID) -> list[EtbEntry]:
        """Gesamte Ueberschreib-Kette, in der ``entry_id`` liegt, aeltester Eintrag zuerst."""
        start = entry_from_row(await self._get_row_or_404(entry_id))
        entries_by_id: dict[uuid.UUID, EtbEntry] = {start.id: start}
        predecessor_by_id: dict[uuid.UUID, uuid.UUID] = {}

        # Rueckwaerts: wer wurde durch den aktuellen Eintrag ersetzt?
        current = start.id
        while True:
            result = await self.db.execute(
                select(EtbEntryRow)
                .options(selectinload(EtbEntryRow.anlagen))
                .where(EtbEntryRow.ueberschrieben_durch_id == current)
                .order_by(EtbEntryRow.laufende_nummer)
                .limit(1)
            )
            row = result.scalar_one_or_none()
            if row is None or row.id in entries_by_id:
                break
            entries_by_id[row.id] = entry_from_row(row)
            predecessor_by_id[current] = row.id
            current = row.id

        # Vorwaerts: Nachfolger per ID nachladen
        previous_id = start.id
        next_id = start.ueberschrieben_durch_id
        while next_id is not None and next_id not in entries_by_id:
            row = await self._load_row(next_id)
            if row is None:
                break
            successor = entry_from_row(row)
            entries_by_id[successor.id] = successor
            predecessor_by_id[successor.id] = previous_id
            previous_id = successor.id
            next_id = successor.ueberschrieben_durch_id

        chain = resolve_supersede_chain(
            find_chain_root(start.id, predecessor_by_id), entries_by_id
        )
        for entry in chain:
            entry.ueberschriebene_eintraege = [
                e.id for e in chain if e.ueberschrieben_durch_id == entry.id
            ]
        return chain

    # ── Aendern ─────────────────────────────────────

    async def update_entry(self, entry_id: uuid.UUID, changes: EtbEntryUpdate) -> EtbEntry:
        """Uebernimmt nur die gesetzten Felder und erhoeht die Version um 1."""
        row = await self._get_row_or_404(entry_id)
        self._ensure_not_closed(row, "aktualisiert")
        self._ensure_not_superseded(row, "aktualisiert")

        values = changes.model_dump(exclude_unset=True)
        if "kategorie" in values:
            values["kategorie"] = values["kategorie"].value
        for key, value in values.items():
            setattr(row, key, value)
        row.version += 1

        await self.db.flush()
        logger.info(
            f"ETB-Eintrag aktualisiert: #{row.laufende_nummer} ({row.id}) "
            f"Version {row.version}, Felder: {', '.join(sorted(values)) or '-'}"
        )
        return entry_from_row(row)

    async def close_entry(self, entry_id: uuid.UUID, user_id: str) -> EtbEntry:
        """Schliesst einen Eintrag ab (einmalig, nicht umkehrbar)."""
        row = await self._get_row_or_404(entry_id)
        self._ensure_not_closed(row, "erneut abgeschlossen")

        result = await self.db.execute(
            update(EtbEntryRow)
            .where(
                EtbEntryRow.id == entry_id,
                EtbEntryRow.ist_abgeschlossen.is_(False),
            )
            .values(
                ist_abgeschlossen=True,
                timestamp_abschluss=_utcnow(),
                abgeschlossen_von=user_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.error(f"ETB-Eintrag {entry_id} wurde parallel abgeschlossen")
            raise ConflictException(
                message="ETB-Eintrag wurde zwischenzeitlich abgeschlossen",
            )

        row = await self._load_row(entry_id)
        logger.info(f"ETB-Eintrag abgeschlossen: #{row.laufende_nummer} ({row.id}) von {user_id}")
        return entry_from_row(row)

    async def supersede_entry(
        self,
        entry_id: uuid.UUID,
        data: EtbEntrySupersede,
        actor: CurrentUser,
    ) -> EtbEntry:
        """Ersetzt einen Eintrag durch einen neuen (Korrektur mit Begruendung).

        Nachfolger anlegen und Original markieren laufen in derselben
        Transaktion. Hat ein paralleler Request das Original bereits
        ueberschrieben oder abgeschlossen, gibt es einen Conflict und die
        Transaktion wird verworfen.
        """
        original = await self._get_row_or_404(entry_id)
        self._ensure_not_closed(original, "überschrieben")
        self._ensure_not_superseded(original, "erneut überschrieben")

        given = data.model_fields_set
        values = {
            "timestamp_ereignis": data.timestamp_ereignis or original.timestamp_ereignis,
            "autor_id": actor.id,
            "autor_name": actor.name or actor.id,
            "autor_rolle": actor.role,
            "kategorie": (data.kategorie.value if data.kategorie else original.kategorie),
            "inhalt": data.inhalt,
        }
        for name in _REFERENCE_FIELDS:
            values[name] = getattr(data, name) if name in given else getattr(original, name)
        original_nummer = original.laufende_nummer

        successor = await self._insert_entry(values)

        result = await self.db.execute(
            update(EtbEntryRow)
            .where(
                EtbEntryRow.id == entry_id,
                EtbEntryRow.status == EtbEntryStatus.AKTIV.value,
                EtbEntryRow.ist_abgeschlossen.is_(False),
            )
            .values(
                status=EtbEntryStatus.UEBERSCHRIEBEN.value,
                ueberschrieben_durch_id=successor.id,
                timestamp_ueberschrieben=_utcnow(),
                ueberschrieben_von=actor.id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.error(
                f"ETB-Eintrag #{original_nummer} ({entry_id}) wurde parallel "
                f"ueberschrieben oder abgeschlossen"
            )
            raise ConflictException(
                message="ETB-Eintrag wurde zwischenzeitlich überschrieben oder abgeschlossen",
            )

        logger.info(
            f"ETB-Eintrag #{original_nummer} ueberschrieben durch "
            f"#{successor.laufende_nummer} ({successor.id}) von {actor.id}, Grund: {data.grund}"
        )
        entry = entry_from_row(successor)
        entry.ueberschriebene_eintraege = [entry_id]
        return entry

    # ── Anlagen ─────────────────────────────────────

    async def add_attachment(
        self,
        entry_id: uuid.UUID,
        filename: str | None,
        content_type: str | None,
        content: bytes,
        beschreibung: str | None = None,
    ) -> EtbAttachment:
        """Speichert eine Datei und verknuepft sie mit dem Eintrag."""
        row = await self._get_row_or_404(entry_id)
        self._ensure_not_closed(row, "um Anlagen ergänzt")

        if not content:
            logger.error(f"Anlage fuer ETB-Eintrag {entry_id} ohne Dateiinhalt")
            raise BadRequestException(
                message="Keine Datei hochgeladen",
                error_code=ErrorCode.MISSING_FILE,
            )
        max_bytes = settings.max_upload_size_mb * 1024 * 1024
        if len(content) > max_bytes:
            logger.error(f"Anlage fuer ETB-Eintrag {entry_id} zu gross: {len(content)} Bytes")
            raise BadRequestException(
                message=f"Datei ist zu groß (maximal {settings.max_upload_size_mb} MB)",
                error_code=ErrorCode.FILE_TOO_LARGE,
            )

        try:
            key = await self.storage.store(filename, content, content_type)
        except AttachmentStorageError as e:
            logger.error(f"Anlage fuer ETB-Eintrag {entry_id} nicht gespeichert: {e}")
            raise BadRequestException(
                message=str(e),
                error_code=ErrorCode.ATTACHMENT_STORAGE_ERROR,
            ) from e

        now = _utcnow()
        attachment = EtbAttachmentRow(
            id=uuid.uuid4(),
            etb_entry_id=entry_id,
            dateiname=Path(filename or "anlage").name[:255],
            dateityp=content_type or "application/octet-stream",
            speicher_ort=key,
            dateigroesse=len(content),
            beschreibung=beschreibung,
            created_at=now,
            updated_at=now,
        )
        self.db.add(attachment)
        try:
            await self.db.flush()
        except SQLAlchemyError:
            await self.storage.delete(key)
            raise

        logger.info(
            f"Anlage {attachment.id} ({attachment.dateiname}) zu ETB-Eintrag "
            f"#{row.laufende_nummer} hinzugefuegt"
        )
        return attachment_from_row(attachment)

    async def find_attachments_by_entry(self, entry_id: uuid.UUID) -> list[EtbAttachment]:
        """Alle Anlagen eines Eintrags (leere Liste, falls keine)."""
        result = await self.db.execute(
            select(EtbAttachmentRow)
            .where(EtbAttachmentRow.etb_entry_id == entry_id)
            .order_by(EtbAttachmentRow.created_at)
        )
        return [attachment_from_row(row) for row in result.scalars().all()]

    async def find_attachment(self, attachment_id: uuid.UUID) -> EtbAttachment:
        """Holt eine Anlage. NotFound, wenn nicht vorhanden."""
        row = await self.db.get(EtbAttachmentRow, attachment_id)
        if row is None:
            logger.error(f"ETB-Anlage {attachment_id} nicht gefunden")
            raise NotFoundException(
                message=f"Anlage mit ID {attachment_id} nicht gefunden",
                error_code=ErrorCode.ETB_ATTACHMENT_NOT_FOUND,
            )
        return attachment_from_row(row)

    async def load_attachment_content(self, attachment_id: uuid.UUID) -> tuple[EtbAttachment, bytes]:
        """Anlage samt Dateiinhalt. NotFound, wenn Zeile oder Datei fehlt."""
        attachment = await self.find_attachment(attachment_id)
        content = await self.storage.load(attachment.speicher_ort)
        if content is None:
            logger.error(f"Datei zu Anlage {attachment_id} fehlt im Speicher")
            raise NotFoundException(
                message="Datei zur Anlage nicht gefunden",
                error_code=ErrorCode.ETB_ATTACHMENT_NOT_FOUND,
            )
        return attachment, content
