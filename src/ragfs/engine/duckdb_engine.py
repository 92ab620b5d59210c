"""DuckDB-backed query engine with its own file namespace."""

import json
import logging
import os
import shutil
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

import duckdb

from ragfs.errors import (
    EngineQueryError,
    MissingFileError,
    MissingTableError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


@dataclass
class QueryResult:
    """Tabular result of a query."""

    columns: list[str]
    rows: list[tuple]

    def __len__(self) -> int:
        return len(self.rows)

    def to_records(self) -> list[dict[str, Any]]:
        return [dict(zip(self.columns, row)) for row in self.rows]

    def to_markdown(self) -> str:
        """Render as a Markdown table ('' when there are no columns)."""
        if not self.columns:
            return ""

        def cell(value: Any) -> str:
            text = "" if value is None else str(value)
            return text.replace("|", "\\|").replace("\n", " ")

        lines = [
            "| " + " | ".join(cell(c) for c in self.columns) + " |",
            "| " + " | ".join("---" for _ in self.columns) + " |",
        ]
        for row in self.rows:
            lines.append("| " + " | ".join(cell(v) for v in row) + " |")
        return "\n".join(lines)


@dataclass
class EngineFile:
    """A file living in the engine's own namespace."""

    name: str
    size: int
    path: Path

    @property
    def id(self) -> str:
        return f"engine:{self.name}"


class QueryEngine:
    """An embedded DuckDB database plus a directory of files it can read.

    The files directory is DuckDB's ``file_search_path``, so queries can
    refer to its files by bare name (``SELECT * FROM 'data.csv'``). The
    connection is opened on first use; concurrent first callers share it.
    """

    def __init__(self, files_dir: Path | str, database: str = ":memory:"):
        self.files_dir = Path(files_dir)
        self.database = database
        self._conn: Optional[duckdb.DuckDBPyConnection] = None
        self._init_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._conn is not None

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """Open the database on first access."""
        if self._conn is None:
            with self._init_lock:
                if self._conn is None:
                    self.files_dir.mkdir(parents=True, exist_ok=True)
                    conn = duckdb.connect(self.database)
                    logger.info(f"Query engine started ({self.database}, files in {self.files_dir})")
                    self._conn = conn
        return self._conn

    @contextmanager
    def cursor(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """A cursor of the shared connection, closed when done."""
        cur = self.connection.cursor()
        # file_search_path is a per-session setting
        cur.execute(f"SET file_search_path = {quote_literal(str(self.files_dir.resolve()))}")
        try:
            yield cur
        finally:
            cur.close()

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult:
        """Run a statement and fetch its result.

        Raises:
            MissingTableError: A referenced table or schema does not exist
            MissingFileError: A referenced file does not exist
            EngineQueryError: Any other engine failure
        """
        with self.cursor() as cur:
            try:
                if params:
                    cur.execute(sql, list(params))
                else:
                    cur.execute(sql)
                if cur.description is None:
                    return QueryResult(columns=[], rows=[])
                columns = [d[0] for d in cur.description]
                return QueryResult(columns=columns, rows=cur.fetchall())
            except duckdb.Error as e:
                raise self._translate(e) from e

    @staticmethod
    def _translate(error: duckdb.Error) -> EngineQueryError:
        message = str(error)
        table_name = MissingTableError.parse(message)
        if table_name is not None:
            return MissingTableError(message, table_name)
        file_path = MissingFileError.parse(message)
        if file_path is not None:
            return MissingFileError(message, file_path)
        return EngineQueryError(message)

    def ensure_schema(self, schema: str) -> None:
        self.query(f"CREATE SCHEMA IF NOT EXISTS {quote_identifier(schema)}")

    def list_tables(self) -> list[str]:
        """Qualified names (schema.table) of all tables."""
        result = self.query(
            """SELECT table_schema, table_name FROM information_schema.tables
               ORDER BY table_schema, table_name"""
        )
        return [f"{schema}.{table}" for schema, table in result.rows]

    # Loading data

    @contextmanager
    def _staged(self, content: bytes, suffix: str) -> Iterator[Path]:
        """Write content to a temporary file outside the engine's namespace."""
        fd, name = tempfile.mkstemp(prefix="ragfs-", suffix=suffix)
        path = Path(name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            yield path
        finally:
            path.unlink(missing_ok=True)

    def load_records(
        self,
        table: str,
        records: list[dict[str, Any]],
        columns: dict[str, str],
        schema: str = "main",
    ) -> None:
        """Create (or replace) a table from records serialized as JSON lines.

        Args:
            table: Table name
            records: Rows as dicts keyed by column name
            columns: Column name -> DuckDB type, in table order
            schema: Schema the table lives in
        """
        target = f"{quote_identifier(schema)}.{quote_identifier(table)}"
        column_defs = ", ".join(f"{quote_identifier(c)} {t}" for c, t in columns.items())
        self.query(f"CREATE OR REPLACE TABLE {target} ({column_defs})")
        if not records:
            return

        payload = "\n".join(json.dumps(r, default=str) for r in records).encode("utf-8")
        column_struct = ", ".join(
            f"{quote_literal(c)}: {quote_literal(t)}" for c, t in columns.items()
        )
        with self._staged(payload, ".jsonl") as path:
            self.query(
                f"""INSERT INTO {target}
                    SELECT * FROM read_json({quote_literal(str(path))},
                        format = 'newline_delimited', columns = {{{column_struct}}})"""
            )

    def load_csv(self, table: str, content: bytes, schema: str = "main") -> None:
        """Create (or replace) a table from CSV content, sniffing its dialect."""
        target = f"{quote_identifier(schema)}.{quote_identifier(table)}"
        with self._staged(content, ".csv") as path:
            self.query(
                f"CREATE OR REPLACE TABLE {target} AS "
                f"SELECT * FROM read_csv({quote_literal(str(path))})"
            )

    def load_json(self, table: str, content: bytes, schema: str = "main") -> None:
        """Create (or replace) a table from JSON (array or JSON lines) content."""
        target = f"{quote_identifier(schema)}.{quote_identifier(table)}"
        with self._staged(content, ".json") as path:
            self.query(
                f"CREATE OR REPLACE TABLE {target} AS "
                f"SELECT * FROM read_json({quote_literal(str(path))})"
            )

    # File namespace

    def _file_path(self, name: str) -> Path:
        if not name or Path(name).name != name:
            raise ValidationError(f"Invalid engine file name: {name!r}")
        return self.files_dir / name

    def glob_files(self, pattern: str = "*") -> list[EngineFile]:
        """Files in the engine's namespace matching a glob pattern."""
        if not self.files_dir.is_dir():
            return []
        return [
            EngineFile(name=path.name, size=path.stat().st_size, path=path)
            for path in sorted(self.files_dir.glob(pattern))
            if path.is_file()
        ]

    def register_file(self, name: str, content: bytes) -> EngineFile:
        """Place a file in the engine's namespace (replacing one of that name)."""
        path = self._file_path(name)
        self.files_dir.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        logger.debug(f"Registered engine file {name} ({len(content)} bytes)")
        return EngineFile(name=name, size=len(content), path=path)

    def read_file(self, name: str) -> bytes:
        path = self._file_path(name)
        if not path.is_file():
            raise NotFoundError(f'File not found: "{name}"')
        return path.read_bytes()

    def drop_file(self, name: str) -> None:
        path = self._file_path(name)
        if not path.is_file():
            raise NotFoundError(f'File not found: "{name}"')
        path.unlink()

    def close(self) -> None:
        with self._init_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def reset(self) -> None:
        """Drop every engine file and close the database."""
        if self.files_dir.is_dir():
            shutil.rmtree(self.files_dir)
        self.close()
