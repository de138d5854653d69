"""Media ingest: turning files into encoded image payloads."""

import base64
import io
import mimetypes
from pathlib import Path
from typing import Iterable, List, Optional, Union

from PIL import Image, UnidentifiedImageError

from ..core.config import IngestConfig
from ..core.exceptions import IngestError
from ..core.logger import get_logger
from ..models.media import MediaPayload

logger = get_logger(__name__)


def to_data_url(content: bytes, mime_type: str) -> str:
    """Build a ``data:`` URL a renderer can display directly."""
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


class MediaIngestAdapter:
    """Reads image files into in-memory payloads.

    The type filter is permissive: anything whose extension maps to an
    ``image/*`` MIME type is accepted as-is, and other files are accepted
    only if Pillow recognizes their content.
    """

    def __init__(self, config: Optional[IngestConfig] = None):
        self.config = config or IngestConfig()

    def detect_mime_type(self, path: Path, content: bytes) -> Optional[str]:
        """Guess the MIME type from the extension, falling back to sniffing the bytes."""
        guessed, _ = mimetypes.guess_type(path.name)
        if guessed and guessed.startswith("image/"):
            return guessed

        try:
            with Image.open(io.BytesIO(content)) as img:
                mime = Image.MIME.get(img.format or "")
        except (UnidentifiedImageError, OSError):
            return None

        if mime and mime.startswith("image/"):
            return mime
        return None

    def load(self, file_path: Union[str, Path]) -> MediaPayload:
        """Read one file; raises ``IngestError`` if it is not a usable image."""
        path = Path(file_path)

        if not path.is_file():
            raise IngestError(f"Not a file: {path}")

        size = path.stat().st_size
        if size > self.config.max_file_size:
            raise IngestError(
                f"{path.name} is {size} bytes, above the {self.config.max_file_size} byte limit"
            )

        try:
            content = path.read_bytes()
        except OSError as e:
            raise IngestError(f"Cannot read {path}: {e}") from e

        mime_type = self.detect_mime_type(path, content)
        if mime_type is None:
            raise IngestError(f"Not an image: {path.name}")

        logger.debug(f"Loaded {path.name} ({mime_type}, {len(content)} bytes)")

        return MediaPayload(
            name=path.name,
            content=content,
            mime_type=mime_type,
            display_ref=to_data_url(content, mime_type),
        )

    def load_many(self, paths: Iterable[Union[str, Path]]) -> List[MediaPayload]:
        """Read several files, excluding any that fail instead of failing the batch."""
        payloads = []
        for path in paths:
            try:
                payloads.append(self.load(path))
            except IngestError as e:
                logger.warning(f"Skipping {path}: {e}")
        return payloads

    def expand_paths(self, paths: Iterable[Union[str, Path]]) -> List[Path]:
        """Expand directories into the image files below them, keeping file arguments as given."""
        allowed = {ext.lower() for ext in self.config.allowed_extensions}
        files: List[Path] = []

        for raw in paths:
            path = Path(raw)
            if path.is_dir():
                found = sorted(
                    p for p in path.rglob('*')
                    if p.is_file() and p.suffix.lower() in allowed
                )
                logger.debug(f"Found {len(found)} images under {path}")
                files.extend(found)
            else:
                files.append(path)

        return files
