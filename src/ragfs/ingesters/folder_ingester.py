"""Ingester for local folders."""

import logging
import os
from pathlib import Path
from typing import Iterator

from ragfs.models import FileInput
from ragfs.utils import decode_text, guess_mime_type

logger = logging.getLogger(__name__)

SKIP_DIRS = {
    "__pycache__",
    "node_modules",
    "venv",
    "env",
    "dist",
    "build",
}


class FolderIngester:
    """Ingester for local filesystem folders."""

    source_type = "folder"

    def can_handle(self, source: Path) -> bool:
        """Check if this is an existing directory."""
        return source.is_dir()

    def ingest(self, source: Path) -> Iterator[FileInput]:
        """Yield files from a folder recursively.

        Files are named by their path relative to the folder.
        """
        for root, dirs, files in os.walk(source):
            # Prune hidden folders and build artifacts in place
            dirs[:] = sorted(d for d in dirs if not d.startswith(".") and d not in SKIP_DIRS)

            for filename in sorted(files):
                if filename.startswith("."):
                    continue
                full_path = Path(root) / filename
                rel_path = full_path.relative_to(source).as_posix()

                try:
                    content = full_path.read_bytes()
                except OSError as e:
                    logger.warning(f"Skipping unreadable file {rel_path}: {e}")
                    continue

                yield FileInput(
                    name=rel_path,
                    type=guess_mime_type(rel_path),
                    content=content,
                    text=decode_text(rel_path, content),
                    metadata={"source": str(source.absolute()), "source_type": self.source_type},
                )
