"""OpenAI embedding backend."""

import logging
import threading
from typing import Optional

from openai import OpenAI, OpenAIError

from ragfs.errors import BackendError, ValidationError

logger = logging.getLogger(__name__)


class OpenAIEmbeddingBackend:
    """Remote embedding backend calling the OpenAI embeddings API."""

    DEFAULT_MODEL = "text-embedding-3-small"

    min_batch_size = 1
    # OpenAI accepts up to 2048 inputs per request
    max_batch_size = 2048
    default_batch_size = 100

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_MODEL,
        dimensions: int = 1536,
        timeout: float = 60.0,
    ):
        if not api_key:
            raise ValidationError("OpenAI API key is required for embeddings")
        self._api_key = api_key
        self._model = model
        self._dimensions = dimensions
        self._timeout = timeout
        self._client: Optional[OpenAI] = None
        self._client_lock = threading.Lock()

    @property
    def id(self) -> str:
        return f"openai/{self._model}"

    @property
    def name(self) -> str:
        return f"OpenAI {self._model}"

    @property
    def description(self) -> str:
        return f"OpenAI's {self._model} model ({self._dimensions} dimensions)"

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _get_client(self) -> OpenAI:
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = OpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a batch of texts.

        Raises:
            BackendError: If the API call fails or returns wrong-sized vectors
        """
        if not texts:
            return []

        client = self._get_client()
        try:
            response = client.embeddings.create(
                model=self._model,
                input=texts,
                encoding_format="float",
            )
        except OpenAIError as e:
            logger.error(f"Failed to generate OpenAI embeddings: {e}")
            raise BackendError(f"OpenAI API error: {e}") from e

        # The API may return items out of order; each carries its input index
        items = sorted(response.data, key=lambda item: item.index)
        embeddings = []
        for i, item in enumerate(items):
            if len(item.embedding) != self._dimensions:
                raise BackendError(
                    f"Embedding dimension mismatch for text {i}: "
                    f"expected {self._dimensions}, got {len(item.embedding)}"
                )
            embeddings.append(list(item.embedding))

        logger.debug(f"Generated {len(embeddings)} embeddings using {self._model}")
        return embeddings
