"""Query engine (DuckDB) and the bridge that feeds it store data."""

from ragfs.engine.bridge import DEFAULT_SCHEMA, QueryBridge
from ragfs.engine.duckdb_engine import EngineFile, QueryEngine, QueryResult

__all__ = ["QueryEngine", "QueryResult", "EngineFile", "QueryBridge", "DEFAULT_SCHEMA"]
