"""Tests for chunking stored files and the batched embedding pipeline."""

import threading

import pytest

from ragfs.chunkers import ChunkingPolicy
from ragfs.embedders import chunk_file, generate_embeddings, resolve_batch_size
from ragfs.errors import BackendError, CancelledError, ValidationError
from ragfs.models import Chunk, FileInput


@pytest.fixture
def chunked_file(store, make_input):
    """A stored file with five unembedded chunks."""
    file = store.find_or_create(make_input("doc.txt", "five chunks of text"))
    store.set_chunks(file, [Chunk(text=f"chunk number {i}") for i in range(5)])
    return file


def test_chunk_file_keeps_short_text_whole(store, make_input):
    file = store.find_or_create(make_input("short.txt", "A short note. Two sentences."))

    [chunk] = chunk_file(store, file)

    assert chunk.text == "A short note. Two sentences."
    assert chunk.metadata["strategy"] == "whole"
    assert [c.text for c in store.get(file.id).chunks] == [chunk.text]


def test_chunk_file_splits_long_text(store, make_input):
    text = "\n\n".join(f"Paragraph {i} has a full sentence." for i in range(10))
    file = store.find_or_create(make_input("long.txt", text))
    policy = ChunkingPolicy(max_chars_per_chunk=80, min_file_chars=0)

    chunks = chunk_file(store, file, policy)

    assert len(chunks) > 1
    assert all(c.metadata["strategy"] == "paragraph" for c in chunks)
    assert len(store.get(file.id).chunks) == len(chunks)


def test_chunk_file_decodes_text_types_without_text(store):
    file = store.find_or_create(
        FileInput(name="plain.txt", type="text/plain", content=b"decoded from bytes")
    )

    [chunk] = chunk_file(store, file)

    assert chunk.text == "decoded from bytes"


def test_chunk_file_without_text_fails(store):
    file = store.find_or_create(
        FileInput(name="image.png", type="image/png", content=b"\x89PNG\x00\x01")
    )

    with pytest.raises(ValidationError):
        chunk_file(store, file)


def test_resolve_batch_size_clamps(fake_backend):
    """Batch sizes outside the backend's range are clamped to it."""
    assert resolve_batch_size(fake_backend) == 2
    assert resolve_batch_size(fake_backend, 3) == 3
    assert resolve_batch_size(fake_backend, 100) == 4
    assert resolve_batch_size(fake_backend, 0) == 1


def test_generate_embeddings_in_batches(store, chunked_file, fake_backend):
    """Five chunks in batches of two take three backend calls."""
    generate_embeddings(store, chunked_file, fake_backend, batch_size=2)

    assert [len(call) for call in fake_backend.calls] == [2, 2, 1]

    reloaded = store.get(chunked_file.id)
    assert all(c.is_embedded for c in reloaded.chunks)
    assert reloaded.chunks[0].embedding == fake_backend.vector("chunk number 0")
    assert reloaded.metadata["embedding_backend"] == "fake/v1"
    assert reloaded.metadata["embedding_dimensions"] == 3
    assert "embedded_at" in reloaded.metadata


@pytest.mark.parametrize("batch_size,expected_calls", [(None, 3), (100, 2), (0, 5)])
def test_generate_embeddings_clamps_batch_size(store, chunked_file, fake_backend, batch_size, expected_calls):
    generate_embeddings(store, chunked_file, fake_backend, batch_size=batch_size)

    assert len(fake_backend.calls) == expected_calls


def test_failed_batch_keeps_earlier_batches(store, chunked_file, backend_factory):
    """A failure on batch two leaves batch one stored and no completion metadata."""
    backend = backend_factory(fail_on_call=2)

    with pytest.raises(BackendError):
        generate_embeddings(store, chunked_file, backend, batch_size=2)

    reloaded = store.get(chunked_file.id)
    assert [c.is_embedded for c in reloaded.chunks] == [True, True, False, False, False]
    assert "embedding_backend" not in reloaded.metadata


def test_rerun_resumes_after_failure(store, chunked_file, backend_factory):
    with pytest.raises(BackendError):
        generate_embeddings(store, chunked_file, backend_factory(fail_on_call=2), batch_size=2)

    retry = backend_factory()
    file = store.get(chunked_file.id)
    generate_embeddings(store, file, retry, batch_size=2)

    assert retry.calls == [["chunk number 2", "chunk number 3"], ["chunk number 4"]]
    assert all(c.is_embedded for c in store.get(file.id).chunks)


def test_rerun_with_same_backend_is_a_no_op(store, chunked_file, fake_backend):
    generate_embeddings(store, chunked_file, fake_backend)
    calls = len(fake_backend.calls)

    generate_embeddings(store, store.get(chunked_file.id), fake_backend)

    assert len(fake_backend.calls) == calls


def test_changing_backend_reembeds_everything(store, chunked_file, fake_backend, backend_factory):
    generate_embeddings(store, chunked_file, fake_backend)

    other = backend_factory(id="fake/v2")
    generate_embeddings(store, store.get(chunked_file.id), other, batch_size=4)

    assert sum(len(call) for call in other.calls) == 5
    assert store.get(chunked_file.id).metadata["embedding_backend"] == "fake/v2"


def test_cancel_stops_between_batches(store, chunked_file, fake_backend):
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(CancelledError):
        generate_embeddings(store, chunked_file, fake_backend, cancel_event=cancel)

    assert fake_backend.calls == []


def test_wrong_dimension_vectors_are_rejected(store, chunked_file, fake_backend):
    fake_backend.embed_batch = lambda texts: [[1.0] for _ in texts]

    with pytest.raises(BackendError, match="dimension"):
        generate_embeddings(store, chunked_file, fake_backend)

    assert not any(c.is_embedded for c in store.get(chunked_file.id).chunks)


def test_wrong_vector_count_is_rejected(store, chunked_file, fake_backend):
    fake_backend.embed_batch = lambda texts: [[1.0, 0.0, 0.0]]

    with pytest.raises(BackendError, match="vectors"):
        generate_embeddings(store, chunked_file, fake_backend, batch_size=2)


def test_generate_embeddings_requires_chunks(store, make_input, fake_backend):
    file = store.find_or_create(make_input("unchunked.txt", "no chunks yet"))

    with pytest.raises(ValidationError):
        generate_embeddings(store, file, fake_backend)


def test_switching_backend_after_failure_reembeds_everything(store, chunked_file, backend_factory):
    """Vectors left by a failed run are not kept when another backend takes over."""
    with pytest.raises(BackendError):
        generate_embeddings(
            store, chunked_file, backend_factory(dimensions=3, fail_on_call=2, id="remote"), batch_size=2
        )

    local = backend_factory(dimensions=5, id="local")
    generate_embeddings(store, store.get(chunked_file.id), local, batch_size=2)

    reloaded = store.get(chunked_file.id)
    assert [len(c.embedding) for c in reloaded.chunks] == [5, 5, 5, 5, 5]
    assert sum(len(call) for call in local.calls) == 5
    assert reloaded.metadata["embedding_backend"] == "local"
    assert reloaded.metadata["embedding_dimensions"] == 5
    assert reloaded.metadata["embedding_in_progress"] is None


def test_failed_switch_resumes_without_mixing_vectors(store, chunked_file, backend_factory):
    generate_embeddings(store, chunked_file, backend_factory(dimensions=3, id="old"))

    with pytest.raises(BackendError):
        generate_embeddings(
            store,
            store.get(chunked_file.id),
            backend_factory(dimensions=4, fail_on_call=2, id="new"),
            batch_size=2,
        )
    partial = store.get(chunked_file.id)
    assert [len(c.embedding) for c in partial.chunks] == [4, 4, 0, 0, 0]

    retry = backend_factory(dimensions=4, id="new")
    generate_embeddings(store, partial, retry, batch_size=2)

    assert [len(call) for call in retry.calls] == [2, 1]
    assert [len(c.embedding) for c in store.get(chunked_file.id).chunks] == [4, 4, 4, 4, 4]
