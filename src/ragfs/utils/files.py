"""File type helpers: mime guessing, binary detection and text decoding."""

import mimetypes
from pathlib import Path
from typing import Optional

DEFAULT_MIME_TYPE = "application/octet-stream"

# Formats the query engine reads directly, plus a few the stdlib table lacks
MIME_TYPES = {
    ".csv": "text/csv",
    ".tsv": "text/tab-separated-values",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".parquet": "application/vnd.apache.parquet",
    ".json": "application/json",
    ".jsonl": "application/jsonl",
    ".ndjson": "application/jsonl",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xls": "application/vnd.ms-excel",
    ".db": "application/x-sqlite3",
    ".sqlite": "application/x-sqlite3",
    ".sqlite3": "application/x-sqlite3",
    ".py": "text/x-python",
    ".ts": "text/typescript",
    ".yaml": "application/yaml",
    ".yml": "application/yaml",
}

TEXTUAL_APPLICATION_TYPES = {
    "application/json",
    "application/jsonl",
    "application/markdown",
    "application/xml",
    "application/yaml",
    "application/javascript",
    "application/typescript",
    "application/sql",
}

BINARY_EXTENSIONS = {
    # Images
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tiff",
    # Documents
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".odt", ".ods",
    # Archives
    ".zip", ".tar", ".gz", ".rar", ".7z", ".bz2", ".xz",
    # Data
    ".parquet", ".db", ".sqlite", ".sqlite3", ".duckdb",
    # Media
    ".mp3", ".mp4", ".avi", ".mov", ".wav", ".flac", ".mkv", ".webm",
    # Compiled
    ".exe", ".dll", ".so", ".dylib", ".bin", ".pyc", ".class", ".o", ".wasm",
}

# Printable ASCII plus tab, LF, CR
_TEXT_BYTES = frozenset(range(32, 127)) | {9, 10, 13}


def guess_mime_type(name: str | Path) -> str:
    """Guess a mime type from a file name, falling back to octet-stream."""
    suffix = Path(name).suffix.lower()
    if suffix in MIME_TYPES:
        return MIME_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(str(name))
    return guessed or DEFAULT_MIME_TYPE


def is_textual_mime_type(mime_type: str) -> bool:
    return mime_type.startswith("text/") or mime_type in TEXTUAL_APPLICATION_TYPES


def is_binary_content(content: bytes, sample_size: int = 8192) -> bool:
    """Detect binary content by null bytes or a high share of non-text bytes."""
    if not content:
        return False

    sample = content[:sample_size]
    if b"\x00" in sample:
        return True

    # UTF-8 text (accents, CJK...) is not binary even though it's non-ASCII
    try:
        sample.decode("utf-8")
        return False
    except UnicodeDecodeError as err:
        # Sample cut through a multi-byte character
        if len(content) > sample_size and err.start >= len(sample) - 3:
            return False

    non_text = sum(1 for byte in sample if byte not in _TEXT_BYTES)
    return (non_text / len(sample)) > 0.30


def detect_binary(name: str | Path, content: bytes) -> bool:
    """Binary by extension first, then by content analysis."""
    if Path(name).suffix.lower() in BINARY_EXTENSIONS:
        return True
    return is_binary_content(content)


def decode_text(name: str | Path, content: bytes) -> Optional[str]:
    """Return the file's text, or None for binary files."""
    if detect_binary(name, content):
        return None
    return content.decode("utf-8", errors="replace")
