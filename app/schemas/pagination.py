"""Pagination Schemas für den Einsatztagebuch-Service."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.config import Limits

T = TypeVar("T")


class PaginationParams(BaseModel):
    """Parameter für Pagination."""

    page: int = Field(default=1, ge=1, description="Seitennummer (1-basiert)")
    limit: int = Field(
        default=Limits.PAGE_SIZE_DEFAULT,
        ge=1,
        le=Limits.PAGE_SIZE_MAX,
        description="Einträge pro Seite",
    )

    @property
    def offset(self) -> int:
        """Berechnet den Offset für die Datenbankabfrage."""
        return (self.page - 1) * self.limit


class PaginationMeta(BaseModel):
    """Metadaten einer Ergebnisseite."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    current_page: int = Field(description="Aktuelle Seite")
    items_per_page: int = Field(description="Einträge pro Seite")
    total_items: int = Field(description="Gesamtanzahl der Einträge")
    total_pages: int = Field(description="Gesamtanzahl der Seiten")
    has_next_page: bool
    has_previous_page: bool


class PaginatedResponse(BaseModel, Generic[T]):
    """Generische paginierte Response ``{items, pagination}``."""

    items: list[T]
    pagination: PaginationMeta

    @classmethod
    def create(
        cls,
        items: list[T],
        total: int,
        page: int,
        limit: int,
    ) -> "PaginatedResponse[T]":
        """Factory-Methode für PaginatedResponse."""
        pages = (total + limit - 1) // limit if limit > 0 else 0
        return cls(
            items=items,
            pagination=PaginationMeta(
                current_page=page,
                items_per_page=limit,
                total_items=total,
                total_pages=pages,
                has_next_page=page < pages,
                has_previous_page=page > 1,
            ),
        )
