"""Wiederverwendbare Validatoren für den Einsatztagebuch-Service."""

from typing import Annotated

from pydantic import AfterValidator, BeforeValidator, Field

from app.config import Limits
from app.domain.etb import EtbKategorie


def validate_search_term(value: str | None) -> str | None:
    """Validiert Suchbegriffe."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if len(value) < Limits.SEARCH_MIN_LENGTH:
        raise ValueError(
            f"Suchbegriff muss mindestens {Limits.SEARCH_MIN_LENGTH} Zeichen haben"
        )
    if len(value) > Limits.SEARCH_MAX_LENGTH:
        raise ValueError(
            f"Suchbegriff darf maximal {Limits.SEARCH_MAX_LENGTH} Zeichen haben"
        )
    return value


def validate_inhalt(value: str) -> str:
    """Inhalt darf nicht nur aus Leerzeichen bestehen."""
    value = value.strip()
    if not value:
        raise ValueError("Inhalt darf nicht leer sein")
    return value


def validate_optional_text(value: str | None) -> str | None:
    """Leere Strings werden zu None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_kategorie(value):
    """Akzeptiert Code ("MELDUNG") oder deutsches Label ("Meldung")."""
    if value is None or isinstance(value, EtbKategorie):
        return value
    try:
        return EtbKategorie(value)
    except ValueError:
        allowed = ", ".join(k.value for k in EtbKategorie)
        raise ValueError(f"Unbekannte Kategorie '{value}'. Erlaubt: {allowed}") from None


# Annotated Types für einfache Wiederverwendung
SearchTerm = Annotated[str | None, AfterValidator(validate_search_term)]
Inhalt = Annotated[
    str, Field(max_length=Limits.INHALT_MAX_LENGTH), AfterValidator(validate_inhalt)
]
ReferenzId = Annotated[
    str | None,
    Field(max_length=Limits.REFERENZ_MAX_LENGTH),
    AfterValidator(validate_optional_text),
]
Funkrufname = Annotated[
    str | None,
    Field(max_length=Limits.FUNKRUFNAME_MAX_LENGTH),
    AfterValidator(validate_optional_text),
]
Kategorie = Annotated[EtbKategorie, BeforeValidator(parse_kategorie)]
