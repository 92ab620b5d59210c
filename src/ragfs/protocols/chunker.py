"""Protocol for text chunking strategies."""

from typing import Protocol, runtime_checkable

from ragfs.models import Chunk


@runtime_checkable
class ChunkingStrategy(Protocol):
    """Protocol for text chunking strategies.

    Implementations must be deterministic: the same text always yields
    the same chunks, so embeddings are reproducible.
    """

    def chunk(self, text: str) -> list[Chunk]:
        """Split text into ordered chunks with metadata."""
        ...
