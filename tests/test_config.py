"""Tests for settings."""

import pytest
from pydantic import ValidationError

from ragfs.config import Settings


def test_defaults():
    settings = Settings()

    assert settings.EMBEDDING_BACKEND == "local"
    assert settings.RAGFS_SYNC_SCHEMA == "ragfs"
    assert settings.chunking_policy().max_chars_per_chunk == 1000


def test_chunking_policy_from_environment(monkeypatch):
    monkeypatch.setenv("MAX_CHARS_PER_CHUNK", "400")
    monkeypatch.setenv("CHUNK_OVERLAP_PERCENTAGE", "10")
    monkeypatch.setenv("PRESERVE_SEPARATORS", "false")

    policy = Settings().chunking_policy()

    assert policy.max_chars_per_chunk == 400
    assert policy.overlap_percentage == 10
    assert policy.preserve_separators is False
    assert policy.overlap_size == 50


def test_overlap_percentage_bounds():
    with pytest.raises(ValidationError):
        Settings(CHUNK_OVERLAP_PERCENTAGE=150)
