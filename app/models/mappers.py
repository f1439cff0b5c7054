"""Abbildung zwischen Datenbank-Zeilen und Domain-Typen.

Die ORM-Klassen bleiben reine Persistenz; Services arbeiten mit den
Dataclasses aus ``app.domain``. Kategorie und Status werden hier explizit
zwischen Text-Code und Enum umgewandelt.
"""

from typing import Any

from app.domain.etb import EtbAttachment, EtbEntry, EtbEntryStatus, EtbKategorie
from app.models.etb_attachment import EtbAttachmentRow
from app.models.etb_entry import EtbEntryRow

# Felder, die 1:1 zwischen Zeile und Domain-Typ uebernommen werden
_ENTRY_PLAIN_FIELDS = (
    "id",
    "laufende_nummer",
    "timestamp_erstellung",
    "timestamp_ereignis",
    "autor_id",
    "autor_name",
    "autor_rolle",
    "inhalt",
    "referenz_einsatz_id",
    "referenz_patient_id",
    "referenz_einsatzmittel_id",
    "system_quelle",
    "sender",
    "receiver",
    "version",
    "ist_abgeschlossen",
    "timestamp_abschluss",
    "abgeschlossen_von",
    "ueberschrieben_durch_id",
    "timestamp_ueberschrieben",
    "ueberschrieben_von",
)

_ATTACHMENT_FIELDS = (
    "id",
    "etb_entry_id",
    "dateiname",
    "dateityp",
    "speicher_ort",
    "beschreibung",
    "dateigroesse",
    "created_at",
    "updated_at",
)


def attachment_from_row(row: EtbAttachmentRow) -> EtbAttachment:
    return EtbAttachment(**{name: getattr(row, name) for name in _ATTACHMENT_FIELDS})


def attachment_to_row_values(attachment: EtbAttachment) -> dict[str, Any]:
    return {name: getattr(attachment, name) for name in _ATTACHMENT_FIELDS}


def entry_from_row(row: EtbEntryRow) -> EtbEntry:
    """Erzeugt den Domain-Eintrag aus einer Zeile.

    Die Anlagen muessen geladen sein (selectinload oder leere Liste), sonst
    wuerde ein Lazy-Load in der Async-Session ausgeloest.
    """
    values = {name: getattr(row, name) for name in _ENTRY_PLAIN_FIELDS}
    values["kategorie"] = EtbKategorie(row.kategorie)
    values["status"] = EtbEntryStatus(row.status)
    values["anlagen"] = [attachment_from_row(a) for a in row.anlagen]
    return EtbEntry(**values)


def entry_to_row_values(entry: EtbEntry) -> dict[str, Any]:
    """Spaltenwerte fuer eine Zeile (ohne Relationships)."""
    values = {name: getattr(entry, name) for name in _ENTRY_PLAIN_FIELDS}
    values["kategorie"] = entry.kategorie.value
    values["status"] = entry.status.value
    return values


def entry_to_row(entry: EtbEntry) -> EtbEntryRow:
    row = EtbEntryRow(**entry_to_row_values(entry))
    row.anlagen = [EtbAttachmentRow(**attachment_to_row_values(a)) for a in entry.anlagen]
    return row
