"""In-memory object URLs for generated media."""

import uuid
from pathlib import Path
from typing import Dict, Tuple, Union

from ..core.logger import get_logger

logger = get_logger(__name__)

SCHEME = "blob:lensflow/"


class ObjectURLRegistry:
    """Maps opaque ``blob:`` references to binary content held in memory."""

    def __init__(self):
        self._objects: Dict[str, Tuple[bytes, str]] = {}

    def create(self, content: bytes, mime_type: str) -> str:
        """Register content and return a renderable reference to it."""
        ref = f"{SCHEME}{uuid.uuid4()}"
        self._objects[ref] = (content, mime_type)
        logger.debug(f"Registered {len(content)} bytes of {mime_type} as {ref}")
        return ref

    def resolve(self, ref: str) -> Tuple[bytes, str]:
        """Return ``(content, mime_type)`` for a reference."""
        try:
            return self._objects[ref]
        except KeyError:
            raise KeyError(f"Unknown or revoked object URL: {ref}") from None

    def revoke(self, ref: str) -> bool:
        """Release a reference; returns False if it was not registered."""
        return self._objects.pop(ref, None) is not None

    def save(self, ref: str, path: Union[str, Path]) -> Path:
        """Write the referenced content to disk."""
        content, _ = self.resolve(ref)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        logger.info(f"Saved {ref} to {path}")
        return path

    def __contains__(self, ref: object) -> bool:
        return ref in self._objects

    def __len__(self) -> int:
        return len(self._objects)
