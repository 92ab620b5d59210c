"""Tests for the DuckDB query engine and the lazy-sync query bridge."""

from unittest.mock import MagicMock

import pytest

from ragfs.engine import QueryBridge, QueryResult
from ragfs.errors import (
    EngineQueryError,
    MissingFileError,
    MissingTableError,
    NotFoundError,
    ValidationError,
)
from ragfs.models import Chunk, FileInput

CSV = b"name,age\nann,30\nbob,40\n"


@pytest.fixture
def csv_file(store):
    return store.find_or_create(FileInput(name="people.csv", type="text/csv", content=CSV))


def test_engine_starts_on_first_query(engine):
    assert engine.is_running is False

    result = engine.query("SELECT 1 AS x")

    assert engine.is_running is True
    assert result.columns == ["x"]
    assert result.rows == [(1,)]


def test_engine_query_params(engine):
    assert engine.query("SELECT ? + 1 AS answer", [41]).rows == [(42,)]


def test_engine_translates_errors(engine):
    with pytest.raises(MissingTableError) as excinfo:
        engine.query("SELECT * FROM nothing_here")
    assert excinfo.value.table_name == "nothing_here"

    with pytest.raises(MissingFileError) as excinfo:
        engine.query("SELECT * FROM read_csv('absent.csv')")
    assert excinfo.value.file_path.endswith("absent.csv")

    with pytest.raises(EngineQueryError) as excinfo:
        engine.query("SELEC 1")
    assert not isinstance(excinfo.value, (MissingTableError, MissingFileError))


def test_error_messages_are_parsed():
    assert MissingTableError.parse("Catalog Error: Table with name files does not exist!") == "files"
    assert MissingTableError.parse("Catalog Error: Schema with name ragfs does not exist!") == "ragfs"
    assert MissingTableError.parse("Parser Error: syntax error") is None
    assert (
        MissingFileError.parse('IO Error: No files found that match the pattern "data.csv"')
        == "data.csv"
    )


def test_engine_file_namespace(engine):
    engine.register_file("notes.txt", b"hello")

    assert [f.name for f in engine.glob_files()] == ["notes.txt"]
    assert engine.glob_files()[0].id == "engine:notes.txt"
    assert engine.read_file("notes.txt") == b"hello"

    engine.drop_file("notes.txt")
    assert engine.glob_files() == []
    with pytest.raises(NotFoundError):
        engine.read_file("notes.txt")
    with pytest.raises(NotFoundError):
        engine.drop_file("notes.txt")
    with pytest.raises(ValidationError):
        engine.register_file("../escape.txt", b"x")


def test_engine_reads_its_files_by_name(engine):
    engine.register_file("people.csv", CSV)

    result = engine.query("SELECT name FROM read_csv('people.csv') ORDER BY age")

    assert result.rows == [("ann",), ("bob",)]


def test_engine_reset(engine):
    engine.register_file("a.txt", b"a")
    engine.query("SELECT 1")

    engine.reset()

    assert engine.is_running is False
    assert engine.glob_files() == []


def test_query_result_markdown():
    result = QueryResult(columns=["a", "b"], rows=[(1, "x|y"), (None, "line\nbreak")])

    assert result.to_markdown() == (
        "| a | b |\n| --- | --- |\n| 1 | x\\|y |\n|  | line break |"
    )
    assert result.to_records() == [{"a": 1, "b": "x|y"}, {"a": None, "b": "line\nbreak"}]
    assert QueryResult(columns=[], rows=[]).to_markdown() == ""


def test_store_tables_load_on_first_query(bridge, engine, store):
    """Querying ragfs.files loads it from the store and re-runs the query."""
    store.find_or_create(FileInput(name="a.txt", type="text/plain", content=b"aaa"))

    result = bridge.query("SELECT name, size FROM ragfs.files")

    assert result.rows == [("a.txt", 3)]
    assert "ragfs.files" in engine.list_tables()


def test_synced_timestamps_are_comparable(bridge, store):
    store.find_or_create(FileInput(name="a.txt", type="text/plain", content=b"aaa"))

    result = bridge.query(
        "SELECT count(*) FROM ragfs.files WHERE created > TIMESTAMP '2000-01-01 00:00:00'"
    )

    assert result.rows == [(1,)]


def test_chunks_table_reports_dimensions(bridge, store):
    file = store.find_or_create(FileInput(name="a.txt", type="text/plain", content=b"ab"))
    store.set_chunks(file, [Chunk(text="a", embedding=[1.0, 0.0]), Chunk(text="b")])

    result = bridge.query(
        "SELECT chunk_index, dimensions FROM ragfs.chunks ORDER BY chunk_index"
    )

    assert result.rows == [(0, 2), (1, 0)]


def test_joined_store_tables_load_together(bridge, store):
    file = store.find_or_create(FileInput(name="a.txt", type="text/plain", content=b"x"))
    store.attach("chat-1", file)

    result = bridge.query(
        """SELECT f.name FROM ragfs.attachments a
           JOIN ragfs.files f ON f.id = a.file_id WHERE a.scope = 'chat-1'"""
    )

    assert result.rows == [("a.txt",)]


def test_user_table_takes_precedence(bridge, engine, store):
    """A table the user created under a store table's name is left alone."""
    store.find_or_create(FileInput(name="a.txt", type="text/plain", content=b"aaa"))
    engine.query("CREATE SCHEMA ragfs")
    engine.query("CREATE TABLE ragfs.files AS SELECT 42 AS answer")

    assert bridge.query("SELECT answer FROM ragfs.files").rows == [(42,)]


def test_unrelated_missing_table_is_not_retried(bridge):
    with pytest.raises(MissingTableError):
        bridge.query("SELECT * FROM nothing_here")


def test_other_errors_propagate(bridge):
    with pytest.raises(EngineQueryError):
        bridge.query("SELEC * FROM ragfs.files")


def test_sync_retries_only_once(store):
    """If the re-run still misses the table, the error reaches the caller."""
    engine = MagicMock()
    engine.query.side_effect = MissingTableError("Table with name files does not exist!", "files")
    bridge = QueryBridge(store, engine)

    with pytest.raises(MissingTableError):
        bridge.query("SELECT * FROM ragfs.files")

    assert engine.query.call_count == 2
    engine.load_records.assert_called_once()


def test_sync_table_refreshes_rows(bridge, store):
    store.find_or_create(FileInput(name="a.txt", type="text/plain", content=b"a"))
    bridge.query("SELECT * FROM ragfs.files")
    store.find_or_create(FileInput(name="b.txt", type="text/plain", content=b"b"))

    assert bridge.sync_table("files") == 2
    assert bridge.query("SELECT count(*) FROM ragfs.files").rows == [(2,)]

    with pytest.raises(ValidationError):
        bridge.sync_table("sqlite_master")


def test_missing_file_is_copied_from_store(bridge, engine, csv_file):
    result = bridge.query("SELECT sum(age) AS total FROM read_csv('people.csv')")

    assert result.rows == [(70,)]
    assert [f.name for f in engine.glob_files()] == ["people.csv"]


def test_missing_file_respects_scope(bridge, store, csv_file):
    store.attach("chat-1", csv_file)

    with pytest.raises(MissingFileError):
        bridge.query("SELECT * FROM read_csv('people.csv')", scope="chat-2")
    assert bridge.query("SELECT count(*) FROM read_csv('people.csv')", scope="chat-1").rows == [(2,)]


def test_missing_file_unknown_to_store(bridge):
    with pytest.raises(MissingFileError):
        bridge.query("SELECT * FROM read_csv('absent.csv')")


def test_query_to_markdown(bridge):
    assert bridge.query_to_markdown("SELECT 1 AS one") == "| one |\n| --- |\n| 1 |"


def test_get_tables_lists_loadable_store_tables(bridge, engine):
    engine.query("CREATE TABLE t AS SELECT 1 AS x")

    tables = bridge.get_tables()

    assert "main.t" in tables
    assert {"ragfs.files", "ragfs.chunks", "ragfs.attachments"} <= set(tables)


def test_file_to_table_csv(bridge, engine, csv_file):
    bridge.file_to_table(csv_file, "people")

    assert engine.query("SELECT count(*) FROM people").rows == [(2,)]


def test_file_to_table_json(bridge, engine, store):
    file = store.find_or_create(
        FileInput(name="rows.json", type="application/json", content=b'[{"x": 1}, {"x": 2}]')
    )

    bridge.file_to_table(file, "rows")

    assert engine.query("SELECT sum(x) FROM rows").rows == [(3,)]


def test_file_to_table_rejects_other_types(bridge, store):
    file = store.find_or_create(FileInput(name="a.txt", type="text/plain", content=b"plain"))

    with pytest.raises(ValidationError):
        bridge.file_to_table(file, "t")


def test_copy_file_to_engine(bridge, engine, csv_file):
    engine_file = bridge.copy_file_to_engine(csv_file, "renamed.csv")

    assert engine_file.name == "renamed.csv"
    assert engine.read_file("renamed.csv") == CSV
