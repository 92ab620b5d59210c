"""CLI entry point for ragfs."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Literal, Optional, cast

from ragfs.config import Settings, get_settings
from ragfs.embedders import chunk_file, generate_embeddings, get_backend
from ragfs.engine import QueryBridge, QueryEngine
from ragfs.errors import NotFoundError, RagfsError
from ragfs.fs import VirtualFilesystem
from ragfs.ingesters import import_source
from ragfs.models import StoredFile
from ragfs.storage import ContentStore

logger = logging.getLogger(__name__)


def _open_store(settings: Settings) -> ContentStore:
    store = ContentStore(settings.RAGFS_DB_PATH)
    store.initialize()
    return store


def _open_engine(settings: Settings) -> QueryEngine:
    return QueryEngine(settings.RAGFS_ENGINE_DIR, settings.RAGFS_ENGINE_DATABASE)


def _resolve(store: ContentStore, ref: str) -> StoredFile:
    """Find a file by id, id prefix, or exact name."""
    file = store.find_by_id(ref)
    if file is not None:
        return file
    for candidate in store.list_files():
        if candidate.name == ref or (len(ref) >= 8 and candidate.id.startswith(ref)):
            return store.get(candidate.id)
    raise NotFoundError(f"No stored file matches {ref!r}")


def add(settings: Settings, path: str, name: Optional[str], mime_type: Optional[str], scope: Optional[str]) -> None:
    """Add one file from disk to the store."""
    store = _open_store(settings)
    overrides = {k: v for k, v in (("name", name), ("type", mime_type)) if v}
    file = store.find_or_create(Path(path), **overrides)
    if scope:
        store.attach(scope, file)
    print(f"{file.id}  {file.name}")


def import_files(settings: Settings, source: str, scope: Optional[str]) -> None:
    """Add every file of a folder or zip to the store."""
    store = _open_store(settings)
    for file in import_source(store, source, scope):
        print(f"{file.id[:12]}  {file.name}")


def ls(settings: Settings, scope: Optional[str]) -> None:
    """List store and engine files as one namespace."""
    fs = VirtualFilesystem(_open_store(settings), _open_engine(settings))
    for file in fs.ls(scope):
        print(f"{file.name:<50} {file.size:>10}  {file.type}")


def chunk(settings: Settings, ref: str) -> None:
    """Chunk a stored file with the configured policy."""
    store = _open_store(settings)
    file = _resolve(store, ref)
    chunks = chunk_file(store, file, settings.chunking_policy())
    print(f"{file.name}: {len(chunks)} chunks")


def embed(settings: Settings, ref: str, backend_kind: Optional[str], batch_size: Optional[int]) -> None:
    """Chunk (if needed) and embed a stored file."""
    store = _open_store(settings)
    file = _resolve(store, ref)
    if not file.has_chunks():
        chunk_file(store, file, settings.chunking_policy())

    backend = get_backend(backend_kind, settings)
    generate_embeddings(store, file, backend, batch_size or settings.EMBEDDING_BATCH_SIZE)
    print(f"{file.name}: {len(file.chunks)} chunks embedded with {backend.id}")


def query(settings: Settings, sql: str, scope: Optional[str]) -> None:
    """Run SQL over the engine, loading store tables on demand."""
    bridge = QueryBridge(
        _open_store(settings), _open_engine(settings), schema=settings.RAGFS_SYNC_SCHEMA
    )
    print(bridge.query_to_markdown(sql, scope=scope))


def serve(settings: Settings, transport: str = "stdio") -> None:
    """Start the MCP server.

    Args:
        transport: Transport protocol (stdio or sse)
    """
    # Import here to avoid loading MCP unless needed
    from ragfs.server import create_mcp_server

    logger.info(f"Serving {settings.RAGFS_DB_PATH} via {transport}")
    mcp = create_mcp_server(settings)
    mcp.run(transport=cast(Literal["stdio", "sse", "streamable-http"], transport))


def info(settings: Settings) -> None:
    """Show information about the store."""
    store = _open_store(settings)
    stats = store.stats()

    print(f"Store: {settings.RAGFS_DB_PATH}")
    print(f"  Files: {stats['files']} ({stats['total_bytes'] / 1024:.1f} KB)")
    print(f"  Chunks: {stats['chunks']} ({stats['embedded_chunks']} embedded)")
    print(f"  Embedding backend: {settings.EMBEDDING_BACKEND}")
    print(f"  Engine files: {settings.RAGFS_ENGINE_DIR}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ragfs",
        description="ragfs - content-addressed files for retrieval-augmented chat",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    add_parser = subparsers.add_parser("add", help="Add a file to the store")
    add_parser.add_argument("path", help="File to add")
    add_parser.add_argument("--name", help="Store under this name instead of the file name")
    add_parser.add_argument("--type", dest="mime_type", help="Mime type (default: guessed)")
    add_parser.add_argument("--scope", help="Attach the file to this scope")

    import_parser = subparsers.add_parser("import", help="Add all files of a folder or zip")
    import_parser.add_argument("source", help="Input folder or zip file path")
    import_parser.add_argument("--scope", help="Attach the files to this scope")

    ls_parser = subparsers.add_parser("ls", help="List store and engine files")
    ls_parser.add_argument("--scope", help="Only stored files attached to this scope")

    chunk_parser = subparsers.add_parser("chunk", help="Chunk a stored file")
    chunk_parser.add_argument("file", help="File id, id prefix, or name")

    embed_parser = subparsers.add_parser("embed", help="Chunk and embed a stored file")
    embed_parser.add_argument("file", help="File id, id prefix, or name")
    embed_parser.add_argument("--backend", choices=["local", "openai"], help="Embedding backend")
    embed_parser.add_argument("--batch-size", type=int, help="Chunks per backend call")

    query_parser = subparsers.add_parser("query", help="Run SQL with DuckDB")
    query_parser.add_argument("sql", help="SQL to run (store tables are ragfs.*)")
    query_parser.add_argument("--scope", help="Scope for files copied in on demand")

    serve_parser = subparsers.add_parser("serve", help="Start the MCP server")
    serve_parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )

    subparsers.add_parser("info", help="Show information about the store")
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )
    settings = get_settings()

    try:
        if args.command == "add":
            add(settings, args.path, args.name, args.mime_type, args.scope)
        elif args.command == "import":
            import_files(settings, args.source, args.scope)
        elif args.command == "ls":
            ls(settings, args.scope)
        elif args.command == "chunk":
            chunk(settings, args.file)
        elif args.command == "embed":
            embed(settings, args.file, args.backend, args.batch_size)
        elif args.command == "query":
            query(settings, args.sql, args.scope)
        elif args.command == "serve":
            serve(settings, args.transport)
        elif args.command == "info":
            info(settings)
    except RagfsError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
