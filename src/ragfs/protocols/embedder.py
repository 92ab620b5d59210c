"""Protocol for embedding backends."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbeddingBackend(Protocol):
    """Protocol for embedding backends.

    Allows swapping between local models (sentence-transformers),
    API-based models (OpenAI), or custom implementations. Every vector a
    backend returns has ``dimensions`` entries.
    """

    @property
    def id(self) -> str:
        """Stable identifier recorded on files embedded by this backend."""
        ...

    @property
    def name(self) -> str:
        """Display name."""
        ...

    @property
    def description(self) -> str:
        ...

    @property
    def dimensions(self) -> int:
        """Return the embedding dimension."""
        ...

    @property
    def min_batch_size(self) -> int:
        ...

    @property
    def max_batch_size(self) -> int:
        ...

    @property
    def default_batch_size(self) -> int:
        ...

    def embed(self, text: str) -> list[float]:
        """Embed a single text; same as ``embed_batch([text])[0]``."""
        ...

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts, returning one vector per text in input order."""
        ...
