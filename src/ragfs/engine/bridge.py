"""Query bridge: runs SQL against the engine, pulling store data in on demand."""

import logging
import re
from pathlib import Path
from typing import Any, Optional, Sequence

from ragfs.engine.duckdb_engine import EngineFile, QueryEngine, QueryResult
from ragfs.errors import MissingFileError, MissingTableError, ValidationError
from ragfs.models import StoredFile
from ragfs.storage import SYNC_TABLES, ContentStore

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = "ragfs"


class QueryBridge:
    """Runs queries over the engine, treating store tables as always present.

    Store tables are exposed in the engine as ``<schema>.<table>`` (e.g.
    ``ragfs.files``) but are only loaded when a query needs them: the query
    is tried as-is, and if the engine reports one of them missing, the
    referenced tables are loaded and the query is re-run once. A table the
    user created under the same name is used as-is, never overwritten.

    Files work the same way: reading a file the engine doesn't have, but
    the store does, copies it into the engine's namespace and retries.
    """

    def __init__(self, store: ContentStore, engine: QueryEngine, schema: str = DEFAULT_SCHEMA):
        self.store = store
        self.engine = engine
        self.schema = schema
        self._table_reference = re.compile(rf"\b{re.escape(schema)}\.(\w+)", re.IGNORECASE)

    def query(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        scope: Optional[str] = None,
    ) -> QueryResult:
        """Run a query, syncing a missing store table or file at most once.

        Args:
            sql: The SQL to run
            params: Optional parameters for a prepared statement
            scope: Limits which store files may be copied in for a missing file

        Raises:
            EngineQueryError: Any failure other than a recoverable miss, or
                the retried query's failure
        """
        try:
            return self.engine.query(sql, params)
        except MissingTableError as e:
            tables = self._sync_targets(sql, e)
            if not tables:
                raise
            logger.info(f"Loading {', '.join(tables)} into the engine for: {e.table_name}")
            self.engine.ensure_schema(self.schema)
            for table in tables:
                self.sync_table(table)
            return self.engine.query(sql, params)
        except MissingFileError as e:
            name = Path(e.file_path).name
            file = self._find_store_file(name, scope)
            if file is None:
                raise
            logger.info(f"Copying {file.name} into the engine as {name}")
            self.copy_file_to_engine(file, name)
            return self.engine.query(sql, params)

    def _sync_targets(self, sql: str, error: MissingTableError) -> list[str]:
        """Store tables referenced by the query, if the miss is one of ours."""
        referenced = []
        for match in self._table_reference.finditer(sql):
            table = match.group(1).lower()
            if table in SYNC_TABLES and table not in referenced:
                referenced.append(table)

        missing = error.table_name.lower()
        if missing in referenced or missing == self.schema.lower():
            return referenced
        return []

    def _find_store_file(self, file_path: str, scope: Optional[str]) -> Optional[StoredFile]:
        for file in self.store.list_files(scope=scope):
            if file_path in (file.id, file.name):
                return file
        return None

    def sync_table(self, table: str) -> int:
        """(Re)load a store table into the engine; returns the row count."""
        if table not in SYNC_TABLES:
            raise ValidationError(f"Not a synchronizable table: {table}")
        records = self.store.table_records(table)
        self.engine.load_records(table, records, SYNC_TABLES[table], schema=self.schema)
        logger.debug(f"Synced {self.schema}.{table} ({len(records)} rows)")
        return len(records)

    def query_to_markdown(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        scope: Optional[str] = None,
    ) -> str:
        """Run a query and render the result as a Markdown table."""
        return self.query(sql, params, scope).to_markdown()

    def get_tables(self) -> list[str]:
        """Engine tables plus the store tables that can be loaded on demand."""
        tables = self.engine.list_tables()
        for table in SYNC_TABLES:
            name = f"{self.schema}.{table}"
            if name not in tables:
                tables.append(name)
        return tables

    def copy_file_to_engine(self, file: StoredFile, name: Optional[str] = None) -> EngineFile:
        """Copy a stored file into the engine's namespace (under its own name by default)."""
        return self.engine.register_file(name or file.name, file.content)

    def file_to_table(self, file: StoredFile, table: str, schema: str = "main") -> None:
        """Create an engine table from a CSV or JSON file's contents."""
        if file.is_csv():
            self.engine.load_csv(table, file.content, schema=schema)
        elif file.is_json() or file.type == "application/jsonl":
            self.engine.load_json(table, file.content, schema=schema)
        else:
            raise ValidationError(f"Unable to create a table from file type {file.type}")
