"""Core data models for stored files and their chunks."""

import hashlib
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from ragfs.errors import ValidationError

# type/subtype, optionally followed by "; parameters"
MIME_TYPE_PATTERN = re.compile(r"[^/\s;]+/[^/\s;]+(\s*;.*)?")


def content_hash(content: bytes) -> str:
    """Return the SHA-256 hex digest used as a file's id."""
    return hashlib.sha256(content).hexdigest()


def validate_file_fields(name: str, mime_type: str) -> None:
    """Raise ValidationError for a blank name or a malformed mime type."""
    if not name or not name.strip():
        raise ValidationError("File name is required")
    if not mime_type or not MIME_TYPE_PATTERN.fullmatch(mime_type):
        raise ValidationError(f"File type must be a valid mime-type, got {mime_type!r}")


@dataclass
class Chunk:
    """A span of a file's text, plus its embedding once computed."""

    text: str
    embedding: list[float] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def index(self) -> int:
        return self.metadata.get("index", 0)

    @property
    def is_embedded(self) -> bool:
        return len(self.embedding) > 0


@dataclass
class FileInput:
    """Everything needed to add a file to the content store."""

    name: str
    type: str
    content: bytes
    text: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class StoredFile:
    """A file in the content store, identified by the hash of its content.

    ``id`` and ``size`` are derived from ``content`` and never change;
    ``name``, ``text``, ``metadata`` and ``chunks`` may be enriched after
    creation through the store.
    """

    id: str
    name: str
    type: str
    content: bytes
    text: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    chunks: list[Chunk] = field(default_factory=list)
    created: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        validate_file_fields(self.name, self.type)

    @classmethod
    def from_input(cls, file_input: FileInput) -> "StoredFile":
        return cls(
            id=content_hash(file_input.content),
            name=file_input.name,
            type=file_input.type,
            content=file_input.content,
            text=file_input.text,
            metadata=dict(file_input.metadata),
        )

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        return self.name.rsplit(".", 1)[-1] if "." in self.name else ""

    def has_chunks(self) -> bool:
        return len(self.chunks) > 0

    def get_metadata(self, key: str, default: Any = None) -> Any:
        return self.metadata.get(key, default)

    # Helpers for common mime types

    def is_image(self) -> bool:
        return self.type.startswith("image/")

    def is_text(self) -> bool:
        return self.type.startswith("text/")

    def is_json(self) -> bool:
        return self.type.startswith("application/json")

    def is_csv(self) -> bool:
        return self.type.startswith("text/csv")

    def is_markdown(self) -> bool:
        return self.type in ("text/markdown", "application/markdown")

    def is_pdf(self) -> bool:
        return self.type.startswith("application/pdf")
