"""EtbAttachmentRow Model - Dateianlagen zu ETB-Eintraegen."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EtbAttachmentRow(Base):
    """Model fuer Dateianlagen, die zu genau einem ETB-Eintrag gehoeren."""

    __tablename__ = "etb_attachment"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    etb_entry_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("etb_entry.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Datei-Informationen
    dateiname: Mapped[str] = mapped_column(String(255), nullable=False)
    dateityp: Mapped[str] = mapped_column(String(100), nullable=False)
    speicher_ort: Mapped[str] = mapped_column(Text, nullable=False)  # Pfad oder Bucket-Key
    dateigroesse: Mapped[int | None] = mapped_column(Integer)  # Bytes
    beschreibung: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )

    # Relationship
    etb_entry: Mapped["EtbEntryRow"] = relationship("EtbEntryRow", back_populates="anlagen")

    __table_args__ = (
        Index("ix_etb_attachment_etb_entry_id", "etb_entry_id"),
    )
