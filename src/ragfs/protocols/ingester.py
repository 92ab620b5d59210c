"""Protocol for input source handlers."""

from pathlib import Path
from typing import Iterator, Protocol, runtime_checkable

from ragfs.models import FileInput


@runtime_checkable
class Ingester(Protocol):
    """Protocol for input source handlers.

    Implementations handle different input formats (zip, folder).
    Uses structural subtyping - no inheritance required.
    """

    @property
    def source_type(self) -> str:
        """Return identifier for this source type (e.g., 'zip', 'folder')."""
        ...

    def can_handle(self, source: Path) -> bool:
        """Check if this ingester can process the given source."""
        ...

    def ingest(self, source: Path) -> Iterator[FileInput]:
        """Yield file descriptors from the source.

        Binary files are yielded with text=None.
        """
        ...
