"""Pytest configuration and fixtures."""

import os
from typing import Optional

import pytest

from ragfs.engine import QueryBridge, QueryEngine
from ragfs.models import FileInput
from ragfs.storage import ContentStore


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["RAGFS_ENV"] = "test"
    os.environ.pop("OPENAI_API_KEY", None)


class FakeBackend:
    """Deterministic embedding backend that records its calls."""

    min_batch_size = 1
    max_batch_size = 4
    default_batch_size = 2

    def __init__(self, dimensions: int = 3, fail_on_call: Optional[int] = None, id: str = "fake/v1"):
        self._dimensions = dimensions
        self._id = id
        self.fail_on_call = fail_on_call
        self.calls: list[list[str]] = []

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return "Fake"

    @property
    def description(self) -> str:
        return "Fake backend for tests"

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise RuntimeError("backend unavailable")
        return [self.vector(text) for text in texts]

    def vector(self, text: str) -> list[float]:
        return [float(len(text)), 1.0, 0.0][: self._dimensions] + [0.0] * max(
            0, self._dimensions - 3
        )


@pytest.fixture
def store(tmp_path):
    """An initialized content store in a temporary directory."""
    content_store = ContentStore(tmp_path / "store.db")
    content_store.initialize()
    return content_store


@pytest.fixture
def engine(tmp_path):
    """An in-memory query engine with its files in a temporary directory."""
    query_engine = QueryEngine(tmp_path / "engine-files")
    yield query_engine
    query_engine.close()


@pytest.fixture
def bridge(store, engine):
    return QueryBridge(store, engine)


@pytest.fixture
def make_input():
    """Build a FileInput from a name and text."""

    def _make(name: str, text: str, mime_type: str = "text/plain") -> FileInput:
        return FileInput(name=name, type=mime_type, content=text.encode("utf-8"), text=text)

    return _make


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def backend_factory():
    """The FakeBackend class, for tests needing a custom configuration."""
    return FakeBackend
