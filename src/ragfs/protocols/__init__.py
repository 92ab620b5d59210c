"""Protocol definitions for extensible components."""

from ragfs.protocols.chunker import ChunkingStrategy
from ragfs.protocols.embedder import EmbeddingBackend
from ragfs.protocols.ingester import Ingester

__all__ = ["Ingester", "EmbeddingBackend", "ChunkingStrategy"]
