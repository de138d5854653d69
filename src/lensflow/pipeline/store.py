"""Photo store: the ordered, copy-on-write photo collection."""

import dataclasses
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from ..core.exceptions import DuplicatePhotoError
from ..core.logger import get_logger
from ..models.photo import MUTABLE_FIELDS, Photo

logger = get_logger(__name__)

Snapshot = Tuple[Photo, ...]
Subscriber = Callable[[Snapshot], None]


class PhotoStore:
    """Single source of truth for the photo collection.

    Every mutation builds a new tuple and swaps it in, so a snapshot handed
    to a reader never changes underneath it. Subscribers are called with the
    new snapshot after each mutation.
    """

    def __init__(self, photos: Iterable[Photo] = ()):
        self._photos: Snapshot = ()
        self._version = 0
        self._subscribers: List[Subscriber] = []
        initial = tuple(photos)
        if initial:
            self.append(initial)

    @property
    def snapshot(self) -> Snapshot:
        return self._photos

    photos = snapshot

    @property
    def version(self) -> int:
        """Number of mutations applied so far."""
        return self._version

    def __len__(self) -> int:
        return len(self._photos)

    def __iter__(self) -> Iterator[Photo]:
        return iter(self._photos)

    def __contains__(self, photo_id: object) -> bool:
        return self.get(photo_id) is not None

    def get(self, photo_id) -> Optional[Photo]:
        for photo in self._photos:
            if photo.id == photo_id:
                return photo
        return None

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a snapshot listener; returns a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, photos: Snapshot) -> None:
        self._photos = photos
        self._version += 1
        for callback in list(self._subscribers):
            try:
                callback(photos)
            except Exception as e:
                logger.error(f"Store subscriber {callback!r} failed: {e}", exc_info=True)

    def append(self, photos: Iterable[Photo]) -> Snapshot:
        """Add records to the end of the collection."""
        new_photos = tuple(photos)
        if not new_photos:
            return self._photos

        seen = {photo.id for photo in self._photos}
        for photo in new_photos:
            if photo.id in seen:
                raise DuplicatePhotoError(f"Photo id already in store: {photo.id}")
            seen.add(photo.id)

        self._publish(self._photos + new_photos)
        logger.debug(f"Appended {len(new_photos)} photos, store now holds {len(self._photos)}")
        return self._photos

    def update_by_id(self, photo_id: str, **patch) -> Optional[Photo]:
        """Replace the matching record with a merged copy.

        Returns the new record, or None when no record has ``photo_id``.
        """
        invalid = set(patch) - MUTABLE_FIELDS
        if invalid:
            raise ValueError(f"Fields cannot be updated after creation: {sorted(invalid)}")

        for index, photo in enumerate(self._photos):
            if photo.id == photo_id:
                updated = dataclasses.replace(photo, **patch)
                self._publish(self._photos[:index] + (updated,) + self._photos[index + 1:])
                return updated

        logger.debug(f"Update for unknown photo {photo_id} ignored")
        return None
