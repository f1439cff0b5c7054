"""Business-Logik Services für das Einsatztagebuch."""

from app.services.attachment_storage_service import (
    AttachmentStorageError,
    LocalAttachmentStorage,
    R2AttachmentStorage,
    get_attachment_storage,
)
from app.services.etb_service import EtbService

__all__ = [
    # ETB
    "EtbService",
    # Anlagen-Speicher
    "AttachmentStorageError",
    "LocalAttachmentStorage",
    "R2AttachmentStorage",
    "get_attachment_storage",
]
