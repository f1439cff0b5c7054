"""Ablage von ETB-Anlagen (Dateien).

Der ETB-Service kennt nur den Vertrag "Bytes ablegen, Schluessel zurueck".
Je nach Konfiguration landen die Dateien lokal in ``settings.upload_dir``
oder in einem S3-kompatiblen Bucket (Cloudflare R2).

Dateinamen im Speicher:
    etb/1718012345678-a3f2b1c4-Lagekarte_Nord.pdf
"""

import asyncio
import logging
import re
import secrets
import time
import unicodedata
from functools import lru_cache
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.config import Limits, settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "etb"


class AttachmentStorageError(Exception):
    """Datei konnte nicht abgelegt oder gelesen werden."""


def sanitize_filename(filename: str | None) -> str:
    """
    Bereinigt einen Dateinamen fuer Dateisystem und Object Storage.

    - Umlaute werden aufgeloest (ä→ae, ü→ue, ö→oe, ß→ss)
    - Akzente und Sonderzeichen werden entfernt
    - Leerzeichen werden zu Unterstrichen
    - Die Endung bleibt erhalten (kleingeschrieben)
    """
    name = Path(filename or "").name
    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = name, ""

    replacements = {
        "ä": "ae", "ö": "oe", "ü": "ue", "ß": "ss",
        "Ä": "Ae", "Ö": "Oe", "Ü": "Ue",
    }
    for char, replacement in replacements.items():
        stem = stem.replace(char, replacement)

    stem = unicodedata.normalize("NFD", stem)
    stem = "".join(c for c in stem if unicodedata.category(c) != "Mn")
    stem = re.sub(r"[^a-zA-Z0-9\s\-_]", "", stem)
    stem = re.sub(r"\s+", " ", stem).strip().replace(" ", "_")
    stem = stem or "anlage"

    ext = re.sub(r"[^a-zA-Z0-9]", "", ext).lower()[:10]

    max_stem = Limits.FILENAME_MAX_LENGTH - len(ext) - 1
    stem = stem[:max_stem]
    return f"{stem}.{ext}" if ext else stem


def build_storage_name(filename: str | None) -> str:
    """Kollisionsresistenter Name: ``<epoch-ms>-<8 hex>-<bereinigter Name>``."""
    epoch_ms = int(time.time() * 1000)
    return f"{epoch_ms}-{secrets.token_hex(4)}-{sanitize_filename(filename)}"


class LocalAttachmentStorage:
    """Ablage im lokalen Dateisystem."""

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)

    def _path_for(self, key: str) -> Path:
        path = (self.base_dir / key).resolve()
        if not path.is_relative_to(self.base_dir.resolve()):
            raise AttachmentStorageError(f"Ungueltiger Speicherort: {key}")
        return path

    def _write(self, key: str, content: bytes) -> None:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    async def store(self, filename: str | None, content: bytes, content_type: str | None = None) -> str:
        key = f"{KEY_PREFIX}/{build_storage_name(filename)}"
        try:
            await asyncio.to_thread(self._write, key, content)
        except OSError as e:
            logger.error(f"Anlage konnte nicht gespeichert werden ({key}): {e}")
            raise AttachmentStorageError("Datei konnte nicht gespeichert werden") from e
        logger.info(f"Anlage gespeichert: {key} ({len(content)} Bytes)")
        return key

    async def load(self, key: str) -> bytes | None:
        path = self._path_for(key)
        if not path.is_file():
            logger.warning(f"Anlage nicht gefunden: {key}")
            return None
        return await asyncio.to_thread(path.read_bytes)

    async def delete(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Anlage konnte nicht geloescht werden ({key}): {e}")
            return False
        logger.info(f"Anlage geloescht: {key}")
        return True


def _get_s3_client():
    """Erstellt einen S3-kompatiblen Client fuer Cloudflare R2."""
    return boto3.client(
        "s3",
        endpoint_url=settings.r2_endpoint_url,
        aws_access_key_id=settings.r2_access_key_id,
        aws_secret_access_key=settings.r2_secret_access_key,
        config=Config(
            signature_version="s3v4",
            retries={"max_attempts": 3, "mode": "adaptive"},
        ),
        region_name="auto",
    )


class R2AttachmentStorage:
    """Ablage in einem S3-kompatiblen Bucket (Cloudflare R2)."""

    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    async def store(self, filename: str | None, content: bytes, content_type: str | None = None) -> str:
        key = f"{KEY_PREFIX}/{build_storage_name(filename)}"
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type or "application/octet-stream",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"R2 Upload fehlgeschlagen fuer {key}: {e}")
            raise AttachmentStorageError("Datei konnte nicht hochgeladen werden") from e
        logger.info(f"Anlage hochgeladen: {key} ({len(content)} Bytes)")
        return key

    async def load(self, key: str) -> bytes | None:
        try:
            response = await asyncio.to_thread(
                self.client.get_object, Bucket=self.bucket, Key=key
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code == "NoSuchKey":
                logger.warning(f"Anlage nicht gefunden in R2: {key}")
                return None
            logger.error(f"R2 Download fehlgeschlagen fuer {key}: {e}")
            raise AttachmentStorageError("Datei konnte nicht geladen werden") from e
        return await asyncio.to_thread(response["Body"].read)

    async def delete(self, key: str) -> bool:
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"R2 Loeschung fehlgeschlagen fuer {key}: {e}")
            return False
        logger.info(f"Anlage geloescht: {key}")
        return True


@lru_cache
def get_attachment_storage() -> LocalAttachmentStorage | R2AttachmentStorage:
    """Waehlt das Backend: R2, falls konfiguriert, sonst lokales Verzeichnis."""
    if settings.r2_access_key_id and settings.r2_endpoint_url:
        logger.info(f"Anlagen-Speicher: R2 Bucket {settings.r2_bucket_name}")
        return R2AttachmentStorage(_get_s3_client(), settings.r2_bucket_name)

    logger.info(f"Anlagen-Speicher: lokales Verzeichnis {settings.upload_dir}")
    return LocalAttachmentStorage(settings.upload_dir)
