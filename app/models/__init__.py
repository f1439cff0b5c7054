"""SQLAlchemy Models für den Einsatztagebuch-Service."""

from app.models.etb_attachment import EtbAttachmentRow
from app.models.etb_entry import EtbEntryRow

__all__ = [
    "EtbEntryRow",
    "EtbAttachmentRow",
]
