"""Tests for the virtual filesystem over store and engine files."""

import base64
import time

import pytest

from ragfs.errors import NotFoundError
from ragfs.fs import EngineFileAdapter, StoredFileAdapter, VirtualFilesystem
from ragfs.models import FileInput


@pytest.fixture
def fs(store, engine):
    return VirtualFilesystem(store, engine)


def test_ls_merges_both_backends(fs, store, engine, make_input):
    store.find_or_create(make_input("notes.txt", "stored"))
    engine.register_file("result.csv", b"a\n1\n")

    files = {f.name: f for f in fs.ls()}

    assert set(files) == {"notes.txt", "result.csv"}
    assert isinstance(files["notes.txt"], StoredFileAdapter)
    assert isinstance(files["result.csv"], EngineFileAdapter)
    assert files["result.csv"].type == "text/csv"


def test_store_file_wins_name_clash(fs, store, engine, make_input):
    store.find_or_create(make_input("data.csv", "from store", "text/csv"))
    engine.register_file("data.csv", b"from engine")

    [file] = fs.ls()

    assert isinstance(file, StoredFileAdapter)
    assert fs.read_file("data.csv") == b"from store"


def test_newest_store_file_wins_repeated_name(fs, store, make_input):
    """Two uploads under one name resolve to the latest, as the CLI does."""
    store.find_or_create(make_input("notes.txt", "first draft"))
    time.sleep(0.01)
    newer = store.find_or_create(make_input("notes.txt", "second draft"))

    [file] = fs.ls()

    assert file.id == newer.id
    assert fs.read_file("notes.txt") == b"second draft"


def test_ls_scope_limits_store_files(fs, store, make_input):
    a = store.find_or_create(make_input("a.txt", "in scope"))
    store.find_or_create(make_input("b.txt", "out of scope"))
    store.attach("chat-1", a)

    assert [f.name for f in fs.ls("chat-1")] == ["a.txt"]
    assert fs.exists("a.txt", "chat-1")
    assert not fs.exists("b.txt", "chat-1")


def test_ls_without_engine(store, make_input):
    store.find_or_create(make_input("a.txt", "alone"))

    assert [f.name for f in VirtualFilesystem(store).ls()] == ["a.txt"]


def test_get_unknown_file(fs):
    with pytest.raises(NotFoundError):
        fs.get_file("missing.txt")


def test_remove_from_each_backend(fs, store, engine, make_input):
    stored = store.find_or_create(make_input("a.txt", "remove me"))
    engine.register_file("b.csv", b"x\n1\n")

    fs.remove_file("a.txt")
    fs.remove_file("b.csv")

    assert store.find_by_id(stored.id) is None
    assert engine.glob_files() == []
    assert fs.ls() == []


def test_urls(fs, store, engine, make_input):
    store.find_or_create(make_input("a.txt", "hi"))
    engine.register_file("b.csv", b"x\n")

    assert fs.file_to_url("a.txt") == "data:text/plain;base64," + base64.b64encode(b"hi").decode()
    url = fs.file_to_url("b.csv")
    assert url.startswith("file://")
    assert url.endswith("/b.csv")


def test_download(fs, store, engine, make_input, tmp_path):
    store.find_or_create(make_input("a.txt", "download me"))
    engine.register_file("b.csv", b"x\n1\n")
    out = tmp_path / "out"
    out.mkdir()

    first = fs.download_file("a.txt", out)
    second = fs.download_file("b.csv", out / "renamed.csv")

    assert first == out / "a.txt"
    assert first.read_bytes() == b"download me"
    assert second.read_bytes() == b"x\n1\n"
