"""Domain-Typen des Einsatztagebuchs (ETB).

Framework-unabhaengig: weder SQLAlchemy noch FastAPI werden hier importiert.
Die Persistenz (``app.models``) und die HTTP-Schicht (``app.schemas``)
bilden explizit auf diese Typen ab.
"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime


class EtbKategorie(str, enum.Enum):
    """Kategorie eines ETB-Eintrags (kanonische, geschlossene Menge)."""

    LAGEMELDUNG = "LAGEMELDUNG"
    MELDUNG = "MELDUNG"
    ANFORDERUNG = "ANFORDERUNG"
    KORREKTUR = "KORREKTUR"
    AUTO_KRAEFTE = "AUTO_KRAEFTE"
    AUTO_PATIENTEN = "AUTO_PATIENTEN"
    AUTO_TECHNISCH = "AUTO_TECHNISCH"
    AUTO_SONSTIGES = "AUTO_SONSTIGES"

    @property
    def label(self) -> str:
        return ETB_KATEGORIE_LABELS[self]

    @property
    def is_automatic(self) -> bool:
        return self.name.startswith("AUTO_")

    @classmethod
    def _missing_(cls, value):
        # Eingaben wie "Meldung" oder "lagemeldung" aufloesen
        if not isinstance(value, str):
            return None
        needle = value.strip().casefold()
        for member in cls:
            if needle in (member.value.casefold(), member.label.casefold()):
                return member
        return None


# Deutsche Labels fuer UI und Altbestand
ETB_KATEGORIE_LABELS = {
    EtbKategorie.LAGEMELDUNG: "Lagemeldung",
    EtbKategorie.MELDUNG: "Meldung",
    EtbKategorie.ANFORDERUNG: "Anforderung",
    EtbKategorie.KORREKTUR: "Korrektur",
    EtbKategorie.AUTO_KRAEFTE: "Meldung (automatisiert) - Kräfte",
    EtbKategorie.AUTO_PATIENTEN: "Meldung (automatisiert) - Patienten",
    EtbKategorie.AUTO_TECHNISCH: "Meldung (automatisiert) - Technisch",
    EtbKategorie.AUTO_SONSTIGES: "Meldung (automatisiert) - Sonstiges",
}


class EtbEntryStatus(str, enum.Enum):
    """Status eines ETB-Eintrags."""

    AKTIV = "AKTIV"
    UEBERSCHRIEBEN = "UEBERSCHRIEBEN"


ETB_STATUS_LABELS = {
    EtbEntryStatus.AKTIV: "Aktiv",
    EtbEntryStatus.UEBERSCHRIEBEN: "Überschrieben",
}


@dataclass
class EtbAttachment:
    """Dateianlage zu genau einem ETB-Eintrag."""

    id: uuid.UUID
    etb_entry_id: uuid.UUID
    dateiname: str
    dateityp: str
    speicher_ort: str
    beschreibung: str | None = None
    dateigroesse: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class EtbEntry:
    """Ein Eintrag im Einsatztagebuch."""

    id: uuid.UUID
    laufende_nummer: int
    timestamp_erstellung: datetime
    timestamp_ereignis: datetime
    autor_id: str
    kategorie: EtbKategorie
    inhalt: str
    autor_name: str | None = None
    autor_rolle: str | None = None
    referenz_einsatz_id: str | None = None
    referenz_patient_id: str | None = None
    referenz_einsatzmittel_id: str | None = None
    system_quelle: str | None = None
    sender: str | None = None
    receiver: str | None = None
    version: int = 1
    status: EtbEntryStatus = EtbEntryStatus.AKTIV
    ist_abgeschlossen: bool = False
    timestamp_abschluss: datetime | None = None
    abgeschlossen_von: str | None = None
    ueberschrieben_durch_id: uuid.UUID | None = None
    timestamp_ueberschrieben: datetime | None = None
    ueberschrieben_von: str | None = None
    anlagen: list[EtbAttachment] = field(default_factory=list)
    # Nur zur Anzeige: IDs der Eintraege, die dieser Eintrag ersetzt hat
    ueberschriebene_eintraege: list[uuid.UUID] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status == EtbEntryStatus.AKTIV

    @property
    def is_superseded(self) -> bool:
        return self.status == EtbEntryStatus.UEBERSCHRIEBEN


def resolve_supersede_chain(
    start_id: uuid.UUID,
    entries_by_id: dict[uuid.UUID, EtbEntry],
) -> list[EtbEntry]:
    """Folgt ``ueberschrieben_durch_id`` ab ``start_id`` bis zum aktuellen Eintrag.

    Arbeitet nur ueber den ID-Index, nie ueber Objekt-Referenzen. Bereits
    besuchte IDs beenden die Kette, damit fehlerhafte Daten (Zyklen) nicht zu
    einer Endlosschleife fuehren.
    """
    chain: list[EtbEntry] = []
    visited: set[uuid.UUID] = set()
    current_id: uuid.UUID | None = start_id

    while current_id is not None and current_id not in visited:
        entry = entries_by_id.get(current_id)
        if entry is None:
            break
        visited.add(current_id)
        chain.append(entry)
        current_id = entry.ueberschrieben_durch_id

    return chain


def find_chain_root(
    entry_id: uuid.UUID,
    predecessor_by_id: dict[uuid.UUID, uuid.UUID],
) -> uuid.UUID:
    """Geht ueber den Vorgaenger-Index zurueck bis zum ersten Eintrag der Kette."""
    visited = {entry_id}
    current = entry_id
    while current in predecessor_by_id:
        previous = predecessor_by_id[current]
        if previous in visited:
            break
        visited.add(previous)
        current = previous
    return current
