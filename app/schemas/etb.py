"""ETB Schemas (Request/Response) für den Einsatztagebuch-Service.

JSON-Felder werden in camelCase ausgegeben (``laufendeNummer``,
``timestampEreignis``), Python-seitig bleiben die Namen snake_case.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from app.config import Limits
from app.domain.etb import (
    ETB_STATUS_LABELS,
    EtbAttachment,
    EtbEntry,
    EtbEntryStatus,
)
from app.schemas.pagination import PaginationParams
from app.schemas.validators import Funkrufname, Inhalt, Kategorie, ReferenzId, SearchTerm


class CamelModel(BaseModel):
    """Basis für alle ETB-Schemas mit camelCase-Aliasen."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ── Requests ──


class EtbEntryCreate(CamelModel):
    """Schema für das Anlegen eines ETB-Eintrags."""

    kategorie: Kategorie = Field(description="Kategorie (Code oder Label)")
    timestamp_ereignis: datetime = Field(description="Zeitpunkt des Ereignisses")
    inhalt: Inhalt
    referenz_einsatz_id: ReferenzId = None
    referenz_patient_id: ReferenzId = None
    referenz_einsatzmittel_id: ReferenzId = None
    sender: Funkrufname = None
    receiver: Funkrufname = None


class EtbAutomaticEntryCreate(EtbEntryCreate):
    """Automatischer Eintrag aus einem anderen Modul (nur AUTO_*-Kategorien)."""

    system_quelle: str = Field(min_length=1, max_length=100, description="Auslösendes Modul")

    @model_validator(mode="after")
    def _check_kategorie(self):
        if not self.kategorie.is_automatic:
            raise ValueError("Automatische Einträge benötigen eine AUTO_*-Kategorie")
        return self


class EtbEntryUpdate(CamelModel):
    """Schema für partielle Updates (nur gesetzte Felder werden übernommen)."""

    kategorie: Kategorie | None = None
    timestamp_ereignis: datetime | None = None
    inhalt: Inhalt | None = None
    referenz_einsatz_id: ReferenzId = None
    referenz_patient_id: ReferenzId = None
    referenz_einsatzmittel_id: ReferenzId = None
    sender: Funkrufname = None
    receiver: Funkrufname = None

    @model_validator(mode="after")
    def _no_explicit_nulls(self):
        # kategorie/inhalt/timestamp sind Pflichtfelder am Eintrag
        for name in ("kategorie", "inhalt", "timestamp_ereignis"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} darf nicht null sein")
        return self


class EtbEntrySupersede(CamelModel):
    """Schema für das Überschreiben eines Eintrags.

    Nicht gesetzte Felder werden vom ursprünglichen Eintrag übernommen.
    """

    inhalt: Inhalt
    grund: str = Field(
        min_length=1,
        max_length=Limits.GRUND_MAX_LENGTH,
        description="Begründung der Korrektur",
    )
    kategorie: Kategorie | None = None
    timestamp_ereignis: datetime | None = None
    referenz_einsatz_id: ReferenzId = None
    referenz_patient_id: ReferenzId = None
    referenz_einsatzmittel_id: ReferenzId = None
    sender: Funkrufname = None
    receiver: Funkrufname = None


class EtbFilter(CamelModel, PaginationParams):
    """Filter-Parameter für ETB-Listen (inkl. page/limit)."""

    kategorie: Kategorie | None = None
    referenz_einsatz_id: str | None = None
    referenz_patient_id: str | None = None
    referenz_einsatzmittel_id: str | None = None
    autor_id: str | None = None
    von_zeitstempel: datetime | None = None
    bis_zeitstempel: datetime | None = None
    search: SearchTerm = None
    include_ueberschrieben: bool = False

    @model_validator(mode="after")
    def _check_range(self):
        if (
            self.von_zeitstempel is not None
            and self.bis_zeitstempel is not None
            and self.von_zeitstempel > self.bis_zeitstempel
        ):
            raise ValueError("vonZeitstempel muss vor bisZeitstempel liegen")
        return self


# ── Responses ──


class EtbAttachmentResponse(CamelModel):
    """Schema für Anlagen-Response."""

    id: UUID
    etb_entry_id: UUID
    dateiname: str
    dateityp: str
    speicher_ort: str
    beschreibung: str | None = None
    dateigroesse: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, attachment: EtbAttachment) -> "EtbAttachmentResponse":
        return cls.model_validate(attachment)


class EtbEntryResponse(CamelModel):
    """Schema für ETB-Eintrag-Response."""

    id: UUID
    laufende_nummer: int
    timestamp_erstellung: datetime
    timestamp_ereignis: datetime
    autor_id: str
    autor_name: str | None = None
    autor_rolle: str | None = None
    kategorie: str
    kategorie_label: str
    inhalt: str
    referenz_einsatz_id: str | None = None
    referenz_patient_id: str | None = None
    referenz_einsatzmittel_id: str | None = None
    system_quelle: str | None = None
    sender: str | None = None
    receiver: str | None = None
    version: int
    status: EtbEntryStatus
    status_label: str
    ist_abgeschlossen: bool
    timestamp_abschluss: datetime | None = None
    abgeschlossen_von: str | None = None
    ueberschrieben_durch_id: UUID | None = None
    timestamp_ueberschrieben: datetime | None = None
    ueberschrieben_von: str | None = None
    anlagen: list[EtbAttachmentResponse] = Field(default_factory=list)
    ueberschriebene_eintraege: list[UUID] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, entry: EtbEntry) -> "EtbEntryResponse":
        return cls(
            id=entry.id,
            laufende_nummer=entry.laufende_nummer,
            timestamp_erstellung=entry.timestamp_erstellung,
            timestamp_ereignis=entry.timestamp_ereignis,
            autor_id=entry.autor_id,
            autor_name=entry.autor_name,
            autor_rolle=entry.autor_rolle,
            kategorie=entry.kategorie.value,
            kategorie_label=entry.kategorie.label,
            inhalt=entry.inhalt,
            referenz_einsatz_id=entry.referenz_einsatz_id,
            referenz_patient_id=entry.referenz_patient_id,
            referenz_einsatzmittel_id=entry.referenz_einsatzmittel_id,
            system_quelle=entry.system_quelle,
            sender=entry.sender,
            receiver=entry.receiver,
            version=entry.version,
            status=entry.status,
            status_label=ETB_STATUS_LABELS[entry.status],
            ist_abgeschlossen=entry.ist_abgeschlossen,
            timestamp_abschluss=entry.timestamp_abschluss,
            abgeschlossen_von=entry.abgeschlossen_von,
            ueberschrieben_durch_id=entry.ueberschrieben_durch_id,
            timestamp_ueberschrieben=entry.timestamp_ueberschrieben,
            ueberschrieben_von=entry.ueberschrieben_von,
            anlagen=[EtbAttachmentResponse.from_domain(a) for a in entry.anlagen],
            ueberschriebene_eintraege=list(entry.ueberschriebene_eintraege),
        )


class EtbHistoryResponse(CamelModel):
    """Verlauf einer Überschreib-Kette, ältester Eintrag zuerst."""

    entry_id: UUID
    aktueller_eintrag_id: UUID | None
    eintraege: list[EtbEntryResponse]
