"""Domain-Typen des Einsatztagebuchs."""

from app.domain.etb import (
    ETB_KATEGORIE_LABELS,
    ETB_STATUS_LABELS,
    EtbAttachment,
    EtbEntry,
    EtbEntryStatus,
    EtbKategorie,
    find_chain_root,
    resolve_supersede_chain,
)

__all__ = [
    "ETB_KATEGORIE_LABELS",
    "ETB_STATUS_LABELS",
    "EtbAttachment",
    "EtbEntry",
    "EtbEntryStatus",
    "EtbKategorie",
    "find_chain_root",
    "resolve_supersede_chain",
]
