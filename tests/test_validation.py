"""Tests für Validierungen der ETB-Schemas."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from app.config import Limits
from app.domain.etb import EtbKategorie
from app.schemas.etb import (
    EtbAutomaticEntryCreate,
    EtbEntryCreate,
    EtbEntrySupersede,
    EtbEntryUpdate,
    EtbFilter,
)
from app.schemas.validators import parse_kategorie, validate_search_term

EREIGNIS = "2025-06-01T12:00:00Z"


class TestSearchTermValidation:
    """Tests für Suchbegriff-Validierung."""

    def test_valid_search_term(self):
        assert validate_search_term("Strom") == "Strom"

    def test_search_term_trimmed(self):
        assert validate_search_term("  Strom  ") == "Strom"

    def test_empty_search_term(self):
        assert validate_search_term(None) is None
        assert validate_search_term("   ") is None

    def test_search_term_too_short(self):
        with pytest.raises(ValueError, match="mindestens"):
            validate_search_term("a")

    def test_search_term_too_long(self):
        with pytest.raises(ValueError, match="maximal"):
            validate_search_term("a" * (Limits.SEARCH_MAX_LENGTH + 1))


class TestKategorieValidation:
    """Tests für die Kategorie-Auflösung."""

    def test_label_accepted(self):
        assert parse_kategorie("Meldung") is EtbKategorie.MELDUNG

    def test_unknown_rejected(self):
        with pytest.raises(ValueError, match="Unbekannte Kategorie"):
            parse_kategorie("Funkspruch")


class TestEtbEntryCreate:
    """Tests für das Anlege-Schema."""

    def test_camel_case_input(self):
        data = EtbEntryCreate.model_validate({
            "kategorie": "Meldung",
            "timestampEreignis": EREIGNIS,
            "inhalt": "Stromausfall",
            "referenzEinsatzId": "E-1",
        })

        assert data.kategorie is EtbKategorie.MELDUNG
        assert data.timestamp_ereignis == datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
        assert data.referenz_einsatz_id == "E-1"

    def test_snake_case_input(self):
        data = EtbEntryCreate(
            kategorie=EtbKategorie.LAGEMELDUNG,
            timestamp_ereignis=EREIGNIS,
            inhalt="Lage stabil",
        )
        assert data.kategorie is EtbKategorie.LAGEMELDUNG

    def test_inhalt_required(self):
        with pytest.raises(ValidationError):
            EtbEntryCreate.model_validate({"kategorie": "MELDUNG", "timestampEreignis": EREIGNIS})

    def test_blank_inhalt_rejected(self):
        with pytest.raises(ValidationError, match="leer"):
            EtbEntryCreate.model_validate({
                "kategorie": "MELDUNG",
                "timestampEreignis": EREIGNIS,
                "inhalt": "   ",
            })

    def test_inhalt_too_long(self):
        with pytest.raises(ValidationError):
            EtbEntryCreate.model_validate({
                "kategorie": "MELDUNG",
                "timestampEreignis": EREIGNIS,
                "inhalt": "x" * (Limits.INHALT_MAX_LENGTH + 1),
            })

    def test_invalid_timestamp(self):
        with pytest.raises(ValidationError):
            EtbEntryCreate.model_validate({
                "kategorie": "MELDUNG",
                "timestampEreignis": "gestern",
                "inhalt": "Text",
            })

    def test_empty_references_become_none(self):
        data = EtbEntryCreate.model_validate({
            "kategorie": "MELDUNG",
            "timestampEreignis": EREIGNIS,
            "inhalt": "Text",
            "sender": "  ",
        })
        assert data.sender is None

    def test_sender_too_long(self):
        with pytest.raises(ValidationError):
            EtbEntryCreate.model_validate({
                "kategorie": "MELDUNG",
                "timestampEreignis": EREIGNIS,
                "inhalt": "Text",
                "sender": "F" * (Limits.FUNKRUFNAME_MAX_LENGTH + 1),
            })


class TestEtbAutomaticEntryCreate:
    """Automatische Einträge brauchen AUTO_*-Kategorie und Quelle."""

    def test_auto_kategorie_accepted(self):
        data = EtbAutomaticEntryCreate(
            kategorie="AUTO_KRAEFTE",
            timestamp_ereignis=EREIGNIS,
            inhalt="RTW 1 alarmiert",
            system_quelle="Einsatzmittelverwaltung",
        )
        assert data.kategorie is EtbKategorie.AUTO_KRAEFTE

    def test_manual_kategorie_rejected(self):
        with pytest.raises(ValidationError, match="AUTO_"):
            EtbAutomaticEntryCreate(
                kategorie="MELDUNG",
                timestamp_ereignis=EREIGNIS,
                inhalt="Text",
                system_quelle="Einsatzmittelverwaltung",
            )


class TestEtbEntryUpdate:
    """Tests für partielle Updates."""

    def test_only_set_fields_dumped(self):
        data = EtbEntryUpdate.model_validate({"inhalt": "Neu"})
        assert data.model_dump(exclude_unset=True) == {"inhalt": "Neu"}

    def test_explicit_null_for_required_field_rejected(self):
        with pytest.raises(ValidationError, match="null"):
            EtbEntryUpdate.model_validate({"inhalt": None})

    def test_reference_may_be_cleared(self):
        data = EtbEntryUpdate.model_validate({"referenzPatientId": None})
        assert data.model_dump(exclude_unset=True) == {"referenz_patient_id": None}


class TestEtbEntrySupersede:
    """Tests für das Überschreib-Schema."""

    def test_grund_required(self):
        with pytest.raises(ValidationError):
            EtbEntrySupersede.model_validate({"inhalt": "Korrektur"})

    def test_minimal(self):
        data = EtbEntrySupersede.model_validate({"inhalt": "Korrektur", "grund": "Tippfehler"})
        assert data.kategorie is None
        assert data.model_fields_set == {"inhalt", "grund"}


class TestEtbFilter:
    """Tests für Filter-Parameter."""

    def test_defaults(self):
        filters = EtbFilter()
        assert filters.page == 1
        assert filters.limit == Limits.PAGE_SIZE_DEFAULT
        assert filters.include_ueberschrieben is False
        assert filters.offset == 0

    def test_offset(self):
        assert EtbFilter(page=3, limit=20).offset == 40

    def test_limit_max(self):
        with pytest.raises(ValidationError):
            EtbFilter(limit=Limits.PAGE_SIZE_MAX + 1)

    def test_page_min(self):
        with pytest.raises(ValidationError):
            EtbFilter(page=0)

    def test_invalid_range(self):
        with pytest.raises(ValidationError, match="vonZeitstempel"):
            EtbFilter(
                von_zeitstempel=datetime(2025, 6, 2, tzinfo=timezone.utc),
                bis_zeitstempel=datetime(2025, 6, 1, tzinfo=timezone.utc),
            )
