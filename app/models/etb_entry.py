"""EtbEntryRow Model - Persistenz eines Einsatztagebuch-Eintrags.

Kategorie und Status werden als Text-Codes gespeichert; die Umwandlung in die
Domain-Enums passiert in ``app.models.mappers``.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EtbEntryRow(Base):
    """Model fuer einen ETB-Eintrag."""

    __tablename__ = "etb_entry"

    # Primaerschluessel
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Fortlaufende Nummer (max + 1, eindeutig ueber alle Eintraege)
    laufende_nummer: Mapped[int] = mapped_column(Integer, nullable=False)

    # Zeitpunkte
    timestamp_erstellung: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    timestamp_ereignis: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # Autor
    autor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    autor_name: Mapped[str | None] = mapped_column(String(255))
    autor_rolle: Mapped[str | None] = mapped_column(String(100))

    # Inhalt
    kategorie: Mapped[str] = mapped_column(String(50), nullable=False)
    inhalt: Mapped[str] = mapped_column(Text, nullable=False)

    # Referenzen (lose, ohne Fremdschluessel)
    referenz_einsatz_id: Mapped[str | None] = mapped_column(String(100))
    referenz_patient_id: Mapped[str | None] = mapped_column(String(100))
    referenz_einsatzmittel_id: Mapped[str | None] = mapped_column(String(100))

    # Quelle automatischer Eintraege (z.B. "Einsatzmittelverwaltung")
    system_quelle: Mapped[str | None] = mapped_column(String(100))

    # Funkverkehr: Absender/Empfaenger (Funkrufname, OPTA)
    sender: Mapped[str | None] = mapped_column(String(100))
    receiver: Mapped[str | None] = mapped_column(String(100))

    # Lebenszyklus
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="AKTIV", server_default="AKTIV"
    )
    ist_abgeschlossen: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    timestamp_abschluss: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    abgeschlossen_von: Mapped[str | None] = mapped_column(String(255))

    # Ueberschreiben: Verweis nur per ID, kein Fremdschluessel in der DB
    ueberschrieben_durch_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    timestamp_ueberschrieben: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    ueberschrieben_von: Mapped[str | None] = mapped_column(String(255))

    # Relationships
    anlagen: Mapped[list["EtbAttachmentRow"]] = relationship(
        "EtbAttachmentRow",
        back_populates="etb_entry",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="EtbAttachmentRow.created_at",
    )

    __table_args__ = (
        UniqueConstraint("laufende_nummer", name="uq_etb_entry_laufende_nummer"),
        Index("ix_etb_entry_timestamp_ereignis", "timestamp_ereignis"),
        Index("ix_etb_entry_autor_id", "autor_id"),
        Index("ix_etb_entry_kategorie", "kategorie"),
        Index("ix_etb_entry_referenz_einsatz_id", "referenz_einsatz_id"),
        Index("ix_etb_entry_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<EtbEntryRow #{self.laufende_nummer} {self.kategorie} ({self.status})>"
