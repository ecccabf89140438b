"""
Knowledge card data model.

A card is built fresh for every request, is immutable once constructed and is
never persisted. ``source`` records which stage of the fallback chain produced
the content.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

TITLE_MAX_CHARS = 15
POINT_TITLE_MAX_CHARS = 12
POINTS_PER_CARD = 3
HARD_MAX_CHARS = 500


class CardSource(str, Enum):
    """Provenance of a card's content."""

    PRIMARY = "primary-provider"
    SECONDARY = "secondary-provider"
    MOCK = "mock-data"


class Point(BaseModel):
    """One of the three knowledge points on a card."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(max_length=POINT_TITLE_MAX_CHARS)
    content: str = Field(max_length=HARD_MAX_CHARS)


class KnowledgeCard(BaseModel):
    """The canonical output contract returned to callers."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(max_length=TITLE_MAX_CHARS)
    introduction: str = Field(max_length=HARD_MAX_CHARS)
    points: tuple[Point, Point, Point]
    summary: str = Field(max_length=HARD_MAX_CHARS)
    source: CardSource

    def visible_text(self) -> dict:
        """Card fields without provenance, as rendered to the child."""
        return self.model_dump(mode="json", exclude={"source"})


class GeneratedImage(BaseModel):
    """Inline image returned by the image provider."""

    model_config = ConfigDict(frozen=True)

    mime_type: str
    base64_data: str
