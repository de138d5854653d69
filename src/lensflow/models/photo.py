"""Photo record and related enumerations."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


ALL_CATEGORIES = "all"


class Category(str, Enum):
    """Fixed set of photo categories produced by analysis."""
    NATURE = "nature"
    URBAN = "urban"
    PEOPLE = "people"
    FOOD = "food"
    TRAVEL = "travel"
    OTHER = "other"

    @classmethod
    def values(cls) -> Tuple[str, ...]:
        return tuple(member.value for member in cls)


class PhotoState(Enum):
    """Observable stage of a photo in the pipeline."""
    READY = "ready"
    ANIMATING = "animating"
    ANIMATED = "animated"


# Fields an existing record may change after creation.
MUTABLE_FIELDS = frozenset({"video_ref", "animation_in_flight"})


@dataclass(frozen=True)
class Photo:
    """A single photo in the collection.

    Records are immutable; the store replaces a record with a merged copy
    when its animation state changes.
    """
    id: str
    name: str
    content: bytes = field(repr=False)
    mime_type: str
    display_ref: str = field(repr=False)
    timestamp: datetime
    category: str
    description: str
    tags: Tuple[str, ...] = ()
    video_ref: Optional[str] = None
    animation_in_flight: bool = False

    def __post_init__(self):
        if not isinstance(self.tags, tuple):
            object.__setattr__(self, "tags", tuple(self.tags))

    @property
    def is_animated(self) -> bool:
        return self.video_ref is not None

    @property
    def state(self) -> PhotoState:
        if self.animation_in_flight:
            return PhotoState.ANIMATING
        if self.video_ref is not None:
            return PhotoState.ANIMATED
        return PhotoState.READY

    def to_dict(self) -> Dict[str, Any]:
        """Serializable summary of the record, without the raw bytes."""
        return {
            'id': self.id,
            'name': self.name,
            'mime_type': self.mime_type,
            'timestamp': self.timestamp.isoformat(),
            'category': self.category,
            'description': self.description,
            'tags': list(self.tags),
            'video_ref': self.video_ref,
            'animation_in_flight': self.animation_in_flight,
        }
