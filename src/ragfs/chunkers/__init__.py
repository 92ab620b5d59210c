"""Text chunking strategies."""

from ragfs.chunkers.paragraph_chunker import (
    DEFAULT_POLICY,
    ChunkingPolicy,
    ParagraphChunker,
    chunk_text,
)

__all__ = ["ChunkingPolicy", "DEFAULT_POLICY", "ParagraphChunker", "chunk_text"]
