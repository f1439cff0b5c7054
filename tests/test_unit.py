"""Unit Tests - Laufen ohne Datenbank."""

import re
import uuid
from datetime import datetime, timezone

import pytest

from app.domain.etb import (
    EtbAttachment,
    EtbEntry,
    EtbEntryStatus,
    EtbKategorie,
    find_chain_root,
    resolve_supersede_chain,
)
from app.models.mappers import (
    entry_from_row,
    entry_to_row,
    entry_to_row_values,
)


def _entry(nummer: int, **kwargs) -> EtbEntry:
    values = {
        "id": uuid.uuid4(),
        "laufende_nummer": nummer,
        "timestamp_erstellung": datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc),
        "timestamp_ereignis": datetime(2025, 6, 1, 11, 55, tzinfo=timezone.utc),
        "autor_id": "user-1",
        "kategorie": EtbKategorie.MELDUNG,
        "inhalt": f"Eintrag {nummer}",
    }
    values.update(kwargs)
    return EtbEntry(**values)


# ==================== KATEGORIE ====================

class TestEtbKategorie:
    """Tests für die kanonische Kategorie-Menge."""

    def test_code_resolves(self):
        assert EtbKategorie("LAGEMELDUNG") is EtbKategorie.LAGEMELDUNG

    def test_label_resolves(self):
        """Deutsche Labels werden auf Codes abgebildet."""
        assert EtbKategorie("Meldung") is EtbKategorie.MELDUNG
        assert EtbKategorie("Meldung (automatisiert) - Kräfte") is EtbKategorie.AUTO_KRAEFTE

    def test_case_insensitive(self):
        assert EtbKategorie("anforderung") is EtbKategorie.ANFORDERUNG
        assert EtbKategorie("  korrektur ") is EtbKategorie.KORREKTUR

    def test_unknown_raises(self):
        with pytest.raises(ValueError):
            EtbKategorie("Funkspruch")

    def test_every_member_has_label(self):
        for kategorie in EtbKategorie:
            assert kategorie.label

    def test_is_automatic(self):
        assert EtbKategorie.AUTO_TECHNISCH.is_automatic
        assert not EtbKategorie.LAGEMELDUNG.is_automatic


# ==================== ÜBERSCHREIB-KETTE ====================

class TestSupersedeChain:
    """Tests für die ID-basierte Auflösung der Überschreib-Kette."""

    def test_chain_follows_ids(self):
        c = _entry(3)
        b = _entry(2, status=EtbEntryStatus.UEBERSCHRIEBEN, ueberschrieben_durch_id=c.id)
        a = _entry(1, status=EtbEntryStatus.UEBERSCHRIEBEN, ueberschrieben_durch_id=b.id)
        index = {e.id: e for e in (a, b, c)}

        chain = resolve_supersede_chain(a.id, index)

        assert [e.laufende_nummer for e in chain] == [1, 2, 3]

    def test_chain_stops_on_cycle(self):
        """Zyklen in fehlerhaften Daten führen nicht zur Endlosschleife."""
        a = _entry(1)
        b = _entry(2, ueberschrieben_durch_id=a.id)
        a.ueberschrieben_durch_id = b.id
        index = {a.id: a, b.id: b}

        chain = resolve_supersede_chain(a.id, index)

        assert [e.laufende_nummer for e in chain] == [1, 2]

    def test_chain_stops_on_missing_successor(self):
        a = _entry(1, ueberschrieben_durch_id=uuid.uuid4())
        chain = resolve_supersede_chain(a.id, {a.id: a})
        assert chain == [a]

    def test_chain_unknown_start(self):
        assert resolve_supersede_chain(uuid.uuid4(), {}) == []

    def test_find_root(self):
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        predecessors = {c: b, b: a}
        assert find_chain_root(c, predecessors) == a
        assert find_chain_root(a, predecessors) == a

    def test_find_root_with_cycle(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        predecessors = {a: b, b: a}
        assert find_chain_root(a, predecessors) in (a, b)


# ==================== MAPPING ====================

class TestMappers:
    """Round-Trip Domain -> Zeile -> Domain."""

    def test_round_trip_preserves_all_fields(self):
        entry_id = uuid.uuid4()
        entry = _entry(
            7,
            id=entry_id,
            autor_name="Max Muster",
            autor_rolle="Einsatzleiter",
            kategorie=EtbKategorie.AUTO_PATIENTEN,
            referenz_einsatz_id="E-2025-001",
            referenz_patient_id="P-17",
            referenz_einsatzmittel_id="RTW 1/83-1",
            system_quelle="Patientenverwaltung",
            sender="Florian Hamburg 1",
            receiver="Leitstelle",
            version=3,
            status=EtbEntryStatus.UEBERSCHRIEBEN,
            ist_abgeschlossen=True,
            timestamp_abschluss=datetime(2025, 6, 1, 13, 0, tzinfo=timezone.utc),
            abgeschlossen_von="user-2",
            ueberschrieben_durch_id=uuid.uuid4(),
            timestamp_ueberschrieben=datetime(2025, 6, 1, 12, 30, tzinfo=timezone.utc),
            ueberschrieben_von="user-3",
            anlagen=[
                EtbAttachment(
                    id=uuid.uuid4(),
                    etb_entry_id=entry_id,
                    dateiname="lage.pdf",
                    dateityp="application/pdf",
                    speicher_ort="etb/1-abc-lage.pdf",
                    beschreibung="Lagekarte",
                    dateigroesse=2048,
                    created_at=datetime(2025, 6, 1, 12, 5, tzinfo=timezone.utc),
                    updated_at=datetime(2025, 6, 1, 12, 5, tzinfo=timezone.utc),
                )
            ],
        )

        assert entry_from_row(entry_to_row(entry)) == entry

    def test_round_trip_keeps_none(self):
        entry = _entry(1)
        restored = entry_from_row(entry_to_row(entry))

        assert restored == entry
        assert restored.autor_name is None
        assert restored.ueberschrieben_durch_id is None
        assert restored.anlagen == []

    def test_row_values_store_codes(self):
        values = entry_to_row_values(_entry(1, kategorie=EtbKategorie.LAGEMELDUNG))
        assert values["kategorie"] == "LAGEMELDUNG"
        assert values["status"] == "AKTIV"
        assert "anlagen" not in values


# ==================== DATEINAMEN ====================

class TestFilenameSanitizing:
    """Tests für die Bereinigung von Anlagen-Dateinamen."""

    def test_umlauts_resolved(self):
        from app.services.attachment_storage_service import sanitize_filename
        assert sanitize_filename("Lageübersicht Größe.PDF") == "Lageuebersicht_Groesse.pdf"

    def test_accents_and_special_chars_removed(self):
        from app.services.attachment_storage_service import sanitize_filename
        assert sanitize_filename("café (kopie)!.jpg") == "cafe_kopie.jpg"

    def test_path_components_dropped(self):
        from app.services.attachment_storage_service import sanitize_filename
        assert sanitize_filename("../../etc/passwd") == "passwd"

    def test_empty_name(self):
        from app.services.attachment_storage_service import sanitize_filename
        assert sanitize_filename("") == "anlage"
        assert sanitize_filename(None) == "anlage"
        assert sanitize_filename("???.txt") == "anlage.txt"

    def test_long_name_truncated(self):
        from app.config import Limits
        from app.services.attachment_storage_service import sanitize_filename
        name = sanitize_filename("a" * 500 + ".pdf")
        assert len(name) <= Limits.FILENAME_MAX_LENGTH
        assert name.endswith(".pdf")

    def test_storage_name_format(self):
        from app.services.attachment_storage_service import build_storage_name
        name = build_storage_name("Lage Nord.pdf")
        assert re.fullmatch(r"\d{13}-[0-9a-f]{8}-Lage_Nord\.pdf", name)

    def test_storage_names_unique(self):
        from app.services.attachment_storage_service import build_storage_name
        names = {build_storage_name("x.pdf") for _ in range(50)}
        assert len(names) == 50


# ==================== LOKALER SPEICHER ====================

class TestLocalAttachmentStorage:
    """Tests für das lokale Speicher-Backend."""

    @pytest.mark.asyncio
    async def test_store_load_delete(self, storage):
        key = await storage.store("lage.pdf", b"%PDF-1.4", "application/pdf")

        assert key.startswith("etb/")
        assert await storage.load(key) == b"%PDF-1.4"
        assert await storage.delete(key) is True
        assert await storage.load(key) is None
        assert await storage.delete(key) is False

    @pytest.mark.asyncio
    async def test_load_outside_base_dir_rejected(self, storage):
        from app.services.attachment_storage_service import AttachmentStorageError
        with pytest.raises(AttachmentStorageError):
            await storage.load("../geheim.txt")


# ==================== PAGINATION ====================

class TestPagination:
    """Tests für die Pagination-Metadaten."""

    def test_create_envelope(self):
        from app.schemas.pagination import PaginatedResponse
        response = PaginatedResponse[int].create(items=[1, 2], total=25, page=2, limit=10)

        assert response.pagination.total_pages == 3
        assert response.pagination.has_next_page is True
        assert response.pagination.has_previous_page is True

    def test_camel_case_keys(self):
        from app.schemas.pagination import PaginatedResponse
        data = PaginatedResponse[int].create(items=[], total=0, page=1, limit=10).model_dump(
            by_alias=True
        )

        assert data["pagination"] == {
            "currentPage": 1,
            "itemsPerPage": 10,
            "totalItems": 0,
            "totalPages": 0,
            "hasNextPage": False,
            "hasPreviousPage": False,
        }


# ==================== AUTH ====================

class TestAuthTokens:
    """Tests für JWT-Erzeugung und -Prüfung."""

    def test_token_round_trip(self):
        from app.auth import create_access_token, decode_token
        payload = decode_token(create_access_token("user-1", name="Max", role="Sichter"))

        assert payload["sub"] == "user-1"
        assert payload["name"] == "Max"
        assert payload["role"] == "Sichter"

    def test_invalid_token(self):
        from app.auth import decode_token
        assert decode_token("kein.gueltiges.token") is None

    def test_system_user(self):
        from app.auth import system_user
        user = system_user()
        assert user.is_system
        assert user.id == "system"
        assert user.role == "Automatisierung"
