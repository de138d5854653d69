"""Encoded media payloads."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class MediaPayload:
    """Binary content of one file plus its MIME type and a display reference."""
    name: str
    content: bytes = field(repr=False)
    mime_type: str
    display_ref: str = field(repr=False)
