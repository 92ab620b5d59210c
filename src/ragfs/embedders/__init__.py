"""Embedding backends and the batched embedding pipeline."""

from typing import Optional

from ragfs.config import Settings, get_settings
from ragfs.embedders.openai_embedder import OpenAIEmbeddingBackend
from ragfs.embedders.pipeline import chunk_file, generate_embeddings, resolve_batch_size
from ragfs.embedders.sentence_transformer import SentenceTransformerBackend
from ragfs.errors import ValidationError
from ragfs.protocols import EmbeddingBackend

# One instance per backend kind, so a local model is only loaded once
_BACKENDS: dict[str, EmbeddingBackend] = {}


def get_backend(kind: Optional[str] = None, settings: Optional[Settings] = None) -> EmbeddingBackend:
    """Get the embedding backend selected by configuration.

    Args:
        kind: "local" or "openai"; defaults to settings.EMBEDDING_BACKEND

    Raises:
        ValidationError: For an unknown kind or a missing OpenAI API key
    """
    settings = settings or get_settings()
    kind = kind or settings.EMBEDDING_BACKEND

    if kind not in _BACKENDS:
        if kind == "local":
            _BACKENDS[kind] = SentenceTransformerBackend(settings.LOCAL_EMBEDDING_MODEL)
        elif kind == "openai":
            _BACKENDS[kind] = OpenAIEmbeddingBackend(
                api_key=settings.OPENAI_API_KEY,
                model=settings.OPENAI_EMBEDDING_MODEL,
                dimensions=settings.OPENAI_EMBEDDING_DIM,
                timeout=settings.OPENAI_TIMEOUT,
            )
        else:
            raise ValidationError(f"Unknown embedding backend: {kind}")

    return _BACKENDS[kind]


def clear_backends() -> None:
    """Forget cached backends (e.g. after the API key changes)."""
    _BACKENDS.clear()


__all__ = [
    "SentenceTransformerBackend",
    "OpenAIEmbeddingBackend",
    "get_backend",
    "clear_backends",
    "chunk_file",
    "generate_embeddings",
    "resolve_batch_size",
]
