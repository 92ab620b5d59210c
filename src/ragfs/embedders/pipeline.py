"""Chunking and batched embedding of stored files."""

import logging
import threading
from datetime import datetime, timezone
from typing import Optional

from ragfs.chunkers import ChunkingPolicy, chunk_text
from ragfs.errors import BackendError, CancelledError, RagfsError, ValidationError
from ragfs.models import Chunk, StoredFile
from ragfs.protocols import EmbeddingBackend
from ragfs.storage import ContentStore

logger = logging.getLogger(__name__)


def chunk_file(
    store: ContentStore, file: StoredFile, policy: Optional[ChunkingPolicy] = None
) -> list[Chunk]:
    """Chunk a file's text and store the chunks, replacing any previous ones.

    Texts shorter than ``policy.min_file_chars`` are kept whole as a single
    chunk.
    """
    policy = policy or ChunkingPolicy()
    text = file.text
    if text is None and file.is_text():
        text = file.content.decode("utf-8", errors="replace")
    if not text or not text.strip():
        raise ValidationError(f"File {file.name} has no text to chunk")

    if len(text) < policy.min_file_chars:
        chunks = [
            Chunk(
                text=text,
                metadata={
                    "index": 0,
                    "length": len(text),
                    "strategy": "whole",
                    "overlap_size": 0,
                    "overlap_length": 0,
                    "start": 0,
                    "end": len(text),
                },
            )
        ]
    else:
        chunks = chunk_text(text, policy)

    store.set_chunks(file, chunks)
    logger.info(f"Chunked {file.name} into {len(chunks)} chunks")
    return chunks


def resolve_batch_size(backend: EmbeddingBackend, batch_size: Optional[int] = None) -> int:
    """Caller's batch size (or the backend default), clamped to the backend's range."""
    size = batch_size if batch_size is not None else backend.default_batch_size
    return max(backend.min_batch_size, min(size, backend.max_batch_size))


def generate_embeddings(
    store: ContentStore,
    file: StoredFile,
    backend: EmbeddingBackend,
    batch_size: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> StoredFile:
    """Embed every chunk of a file, one batch at a time.

    Each batch is persisted before the next one starts, so a failure
    leaves earlier batches embedded. The backend is recorded as
    ``embedding_in_progress`` before the first batch; re-running with that
    backend skips chunks that already carry a vector, so it resumes where
    it stopped. Any other backend first clears every vector and starts over.

    Args:
        store: Store the file lives in
        file: File whose chunks to embed
        backend: Embedding backend to use
        batch_size: Override for ``backend.default_batch_size``
        cancel_event: Checked between batches; when set the run stops

    Returns:
        The same file, with embeddings and completion metadata filled in

    Raises:
        ValidationError: If the file has no chunks
        BackendError: If a batch fails (earlier batches stay stored)
        CancelledError: If cancel_event was set between batches
    """
    if not file.has_chunks():
        raise ValidationError(f"File {file.name} must be chunked before embedding")

    size = resolve_batch_size(backend, batch_size)
    # Whoever wrote the existing vectors: an unfinished run, else the last completed one
    previous_backend = file.get_metadata("embedding_in_progress") or file.get_metadata(
        "embedding_backend"
    )
    embedded = [i for i, chunk in enumerate(file.chunks) if chunk.is_embedded]
    if embedded and previous_backend != backend.id:
        logger.info(f"Re-embedding {file.name}: was {previous_backend}, now {backend.id}")
        # Cleared first, so a failure never leaves vectors of two backends behind
        store.update_chunk_embeddings(file, {i: [] for i in embedded})

    store.set_metadata(file, "embedding_in_progress", backend.id)
    pending = [i for i, chunk in enumerate(file.chunks) if not chunk.is_embedded]

    batches = [pending[i : i + size] for i in range(0, len(pending), size)]
    logger.info(
        f"Embedding {file.name}: {len(pending)} of {len(file.chunks)} chunks "
        f"in {len(batches)} batches of up to {size} with {backend.id}"
    )

    for number, indexes in enumerate(batches, 1):
        if cancel_event is not None and cancel_event.is_set():
            raise CancelledError(
                f"Embedding of {file.name} cancelled after {number - 1} of {len(batches)} batches"
            )

        texts = [file.chunks[i].text for i in indexes]
        try:
            vectors = backend.embed_batch(texts)
        except RagfsError:
            raise
        except Exception as e:
            raise BackendError(f"{backend.id} failed on batch {number}: {e}") from e

        if len(vectors) != len(texts):
            raise BackendError(
                f"{backend.id} returned {len(vectors)} vectors for {len(texts)} texts"
            )
        for vector in vectors:
            if len(vector) != backend.dimensions:
                raise BackendError(
                    f"{backend.id} returned a {len(vector)}-dimension vector, "
                    f"expected {backend.dimensions}"
                )

        store.update_chunk_embeddings(file, dict(zip(indexes, vectors)))
        logger.debug(f"Batch {number}/{len(batches)} of {file.name} stored")

    store.update_metadata(
        file,
        {
            "embedding_backend": backend.id,
            "embedding_dimensions": backend.dimensions,
            "embedded_at": datetime.now(timezone.utc).isoformat(),
            "embedding_in_progress": None,
        },
    )
    return file
