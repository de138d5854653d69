"""Derived views over the photo collection: filtering, search and timeline grouping."""

from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from ..core.logger import get_logger
from ..models.photo import ALL_CATEGORIES, Photo
from ..utils.date_utils import DateUtils
from .store import PhotoStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class TimelineGroup:
    """Photos sharing a calendar month, newest first."""
    year: int
    month: int
    label: str
    photos: Tuple[Photo, ...]

    def __len__(self) -> int:
        return len(self.photos)


def matches_category(photo: Photo, category: str) -> bool:
    return category == ALL_CATEGORIES or photo.category == category


def matches_query(photo: Photo, query: str) -> bool:
    """Case-insensitive substring match against description, category or any tag."""
    query = query.lower()
    if not query:
        return True
    return (
        query in photo.description.lower()
        or query in photo.category.lower()
        or any(query in tag.lower() for tag in photo.tags)
    )


def filter_photos(
    photos: Iterable[Photo],
    category: str = ALL_CATEGORIES,
    query: str = "",
) -> Tuple[Photo, ...]:
    """Photos passing both the category filter and the search query, in input order."""
    query = (query or "").lower()
    return tuple(
        photo for photo in photos
        if matches_category(photo, category) and matches_query(photo, query)
    )


def group_by_month(photos: Iterable[Photo]) -> List[TimelineGroup]:
    """Sort by timestamp descending and bucket by calendar month."""
    ordered = sorted(photos, key=lambda p: p.timestamp, reverse=True)

    buckets = {}
    for photo in ordered:
        buckets.setdefault(DateUtils.month_key(photo.timestamp), []).append(photo)

    return [
        TimelineGroup(
            year=year,
            month=month,
            label=DateUtils.month_label(members[0].timestamp),
            photos=tuple(members),
        )
        for (year, month), members in buckets.items()
    ]


class LiveView:
    """Filter state plus the projections it produces, kept current with a store.

    The view recomputes whenever the store publishes a new snapshot or the
    category/query inputs change. The store itself is never touched.
    """

    def __init__(self, store: PhotoStore, category: str = ALL_CATEGORIES, query: str = ""):
        self.store = store
        self._category = category
        self._query = query
        self._listeners: List[Callable[["LiveView"], None]] = []
        self._photos: Tuple[Photo, ...] = ()
        self._groups: Optional[List[TimelineGroup]] = None
        self._unsubscribe = store.subscribe(self._on_snapshot)
        self._recompute(store.snapshot)

    @property
    def category(self) -> str:
        return self._category

    @category.setter
    def category(self, value: str) -> None:
        self._category = value
        self._recompute(self.store.snapshot)

    @property
    def query(self) -> str:
        return self._query

    @query.setter
    def query(self, value: str) -> None:
        self._query = value or ""
        self._recompute(self.store.snapshot)

    @property
    def photos(self) -> Tuple[Photo, ...]:
        return self._photos

    @property
    def groups(self) -> List[TimelineGroup]:
        if self._groups is None:
            self._groups = group_by_month(self._photos)
        return self._groups

    def on_change(self, listener: Callable[["LiveView"], None]) -> None:
        self._listeners.append(listener)

    def _on_snapshot(self, snapshot: Sequence[Photo]) -> None:
        self._recompute(snapshot)

    def _recompute(self, snapshot: Sequence[Photo]) -> None:
        self._photos = filter_photos(snapshot, self._category, self._query)
        self._groups = None
        for listener in list(self._listeners):
            listener(self)

    def close(self) -> None:
        self._unsubscribe()
