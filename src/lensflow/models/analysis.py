"""Structured analysis output returned by the vision analyzer."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.date_utils import DateUtils
from .photo import Category


FALLBACK_TITLE = "Untitled Image"
FALLBACK_TAGS = ["photo"]


class AnalysisResult(BaseModel):
    """Category, title, date guess and tags for one image."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    category: str
    title: str
    guessed_date: Optional[str] = Field(default=None, alias="guessedDate")
    tags: List[str] = Field(default_factory=list)
    is_fallback: bool = Field(default=False, exclude=True)

    @field_validator("category")
    @classmethod
    def normalize_category(cls, value: str) -> str:
        # Unknown categories are kept as given, only lower-cased.
        return value.strip().lower()

    @field_validator("tags", mode="before")
    @classmethod
    def default_tags(cls, value):
        return [] if value is None else value

    @property
    def is_known_category(self) -> bool:
        return self.category in Category.values()

    @classmethod
    def fallback(cls, now: Optional[datetime] = None) -> "AnalysisResult":
        """Deterministic result used when analysis fails."""
        return cls(
            category=Category.OTHER.value,
            title=FALLBACK_TITLE,
            guessed_date=DateUtils.current_year_month(now),
            tags=list(FALLBACK_TAGS),
            is_fallback=True,
        )

    @staticmethod
    def response_schema() -> dict:
        """Schema sent to the model to constrain its output."""
        return {
            "type": "OBJECT",
            "properties": {
                "category": {"type": "STRING"},
                "title": {"type": "STRING"},
                "guessedDate": {"type": "STRING"},
                "tags": {
                    "type": "ARRAY",
                    "items": {"type": "STRING"},
                    "description": "A list of descriptive labels for search and organization",
                },
            },
            "required": ["category", "title", "tags"],
        }
