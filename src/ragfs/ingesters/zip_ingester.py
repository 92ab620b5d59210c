"""Ingester for ZIP archive files."""

import zipfile
from pathlib import Path
from typing import Iterator

from ragfs.models import FileInput
from ragfs.utils import decode_text, guess_mime_type


class ZipIngester:
    """Ingester for ZIP archive files."""

    source_type = "zip"

    def can_handle(self, source: Path) -> bool:
        """Check if this is a zip file."""
        return source.suffix.lower() == ".zip" and source.exists()

    def ingest(self, source: Path) -> Iterator[FileInput]:
        """Yield files from a ZIP archive, named by their archive path."""
        with zipfile.ZipFile(source, "r") as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue

                content = zf.read(info.filename)
                yield FileInput(
                    name=info.filename,
                    type=guess_mime_type(info.filename),
                    content=content,
                    text=decode_text(info.filename, content),
                    metadata={"source": str(source.absolute()), "source_type": self.source_type},
                )
