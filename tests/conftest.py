"""Pytest configuration and fixtures."""

import io
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from lensflow.core.config import Config
from lensflow.core.credentials import CredentialSelector
from lensflow.models.analysis import AnalysisResult
from lensflow.models.media import MediaPayload
from lensflow.models.photo import Photo
from lensflow.pipeline.orchestrator import PipelineOrchestrator
from lensflow.pipeline.store import PhotoStore
from lensflow.utils.media import to_data_url


FIXED_NOW = datetime(2024, 3, 9, 12, 0, 0)


class RecordingCredentialSelector(CredentialSelector):
    """Credential selector that records prompts instead of asking anyone."""

    def __init__(self, api_key: Optional[str] = "test-key", next_key: str = "new-key"):
        self._api_key = api_key
        self.next_key = next_key
        self.select_calls = 0

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key

    async def select_credential(self) -> None:
        self.select_calls += 1
        self._api_key = self.next_key


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    temp_dir = Path(tempfile.mkdtemp())
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir):
    """Create test configuration."""
    return Config(
        api_key="test-key",
        log_dir=temp_dir / "logs",
    )


@pytest.fixture
def png_bytes():
    """A small valid PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color=(200, 120, 40)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def sample_payload(png_bytes):
    """An ingested image payload."""
    return MediaPayload(
        name="golden_hour.png",
        content=png_bytes,
        mime_type="image/png",
        display_ref=to_data_url(png_bytes, "image/png"),
    )


@pytest.fixture
def sample_image_paths(temp_dir, png_bytes):
    """Image files on disk plus one file that is not an image."""
    photos_dir = temp_dir / "photos"
    photos_dir.mkdir()

    paths = []
    for filename in ["beach.png", "street.png", "dinner.png"]:
        file_path = photos_dir / filename
        file_path.write_bytes(png_bytes)
        paths.append(file_path)

    notes = photos_dir / "notes.txt"
    notes.write_text("not an image")
    paths.append(notes)

    return paths


@pytest.fixture
def make_photo(png_bytes):
    """Factory for Photo records."""
    counter = {'n': 0}

    def factory(
        category: str = "nature",
        description: str = "Untitled",
        tags=(),
        timestamp: datetime = FIXED_NOW,
        photo_id: Optional[str] = None,
        **extra,
    ) -> Photo:
        counter['n'] += 1
        return Photo(
            id=photo_id or f"photo-{counter['n']}",
            name=f"IMG_{counter['n']:03d}.png",
            content=png_bytes,
            mime_type="image/png",
            display_ref=to_data_url(png_bytes, "image/png"),
            timestamp=timestamp,
            category=category,
            description=description,
            tags=tuple(tags),
            **extra,
        )

    return factory


@pytest.fixture
def credentials():
    """Credential selector with a key already selected."""
    return RecordingCredentialSelector()


@pytest.fixture
def no_credentials():
    """Credential selector with nothing selected yet."""
    return RecordingCredentialSelector(api_key=None)


@pytest.fixture
def mock_vision_client():
    """Mock vision analyzer client."""
    client = AsyncMock()
    client.analyze.return_value = AnalysisResult(
        category="Nature",
        title="Golden Hour",
        guessed_date="2023-05",
        tags=["sunset", "hill"],
    )
    return client


@pytest.fixture
def mock_video_client():
    """Mock video generator client."""
    client = AsyncMock()
    client.animate.return_value = "blob:lensflow/test-video"
    return client


@pytest.fixture
def store():
    return PhotoStore()


@pytest.fixture
def orchestrator(store, mock_vision_client, mock_video_client, credentials):
    """Orchestrator wired to mocked clients and a fixed clock."""
    return PipelineOrchestrator(
        store=store,
        vision=mock_vision_client,
        video=mock_video_client,
        credentials=credentials,
        clock=lambda: FIXED_NOW,
    )
