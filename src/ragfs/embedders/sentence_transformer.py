"""SentenceTransformer-based local embedding backend."""

import logging
import threading
from typing import Optional

from sentence_transformers import SentenceTransformer

from ragfs.errors import BackendError

logger = logging.getLogger(__name__)

# Known output sizes, so dimensions can be reported without loading the model
KNOWN_DIMENSIONS = {
    "all-MiniLM-L6-v2": 384,
    "all-MiniLM-L12-v2": 384,
    "all-mpnet-base-v2": 768,
    "multi-qa-MiniLM-L6-cos-v1": 384,
}


class SentenceTransformerBackend:
    """Local embedding backend using the sentence-transformers library.

    Uses all-MiniLM-L6-v2 by default - a fast, lightweight model
    that produces good quality embeddings for semantic search. The model
    is loaded on first use; concurrent first callers share one load, and
    a failed load is retried by the next caller.
    """

    DEFAULT_MODEL = "all-MiniLM-L6-v2"

    min_batch_size = 1
    max_batch_size = 256
    default_batch_size = 32

    def __init__(self, model_name: str | None = None):
        """Initialize the backend.

        Args:
            model_name: Name of the sentence-transformers model to use.
                       Defaults to all-MiniLM-L6-v2.
        """
        self._model_name = model_name or self.DEFAULT_MODEL
        self._model: Optional[SentenceTransformer] = None
        self._load_lock = threading.Lock()

    @property
    def id(self) -> str:
        return f"sentence-transformers/{self._model_name}"

    @property
    def name(self) -> str:
        return f"SentenceTransformer {self._model_name}"

    @property
    def description(self) -> str:
        return f"Local {self._model_name} model ({self.dimensions} dimensions)"

    @property
    def model_name(self) -> str:
        """Return identifier for the model used."""
        return self._model_name

    @property
    def model(self) -> SentenceTransformer:
        """Lazy-load the model on first access."""
        if self._model is None:
            with self._load_lock:
                if self._model is None:
                    logger.info(f"Loading embedding model {self._model_name}...")
                    try:
                        self._model = SentenceTransformer(self._model_name)
                    except Exception as e:
                        raise BackendError(
                            f"Failed to load embedding model {self._model_name}: {e}"
                        ) from e
                    logger.info(f"Embedding model {self._model_name} loaded")
        return self._model

    @property
    def dimensions(self) -> int:
        """Return the embedding dimension."""
        if self._model is None and self._model_name in KNOWN_DIMENSIONS:
            return KNOWN_DIMENSIONS[self._model_name]
        return self.model.get_sentence_embedding_dimension()

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a batch of texts.

        Args:
            texts: List of text strings to embed

        Returns:
            One normalized vector per text, in input order
        """
        if not texts:
            return []

        model = self.model
        try:
            embeddings = model.encode(
                texts,
                convert_to_numpy=True,
                normalize_embeddings=True,  # For cosine similarity
                show_progress_bar=False,
            )
        except Exception as e:
            raise BackendError(f"SentenceTransformer embedding error: {e}") from e
        return embeddings.tolist()
