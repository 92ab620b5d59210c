"""FastMCP server exposing the ragfs virtual filesystem and query bridge."""

from typing import Optional

from mcp.server.fastmcp import FastMCP

from ragfs.config import Settings, get_settings
from ragfs.embedders import get_backend
from ragfs.engine import QueryBridge, QueryEngine
from ragfs.errors import EngineQueryError, NotFoundError
from ragfs.fs import VirtualFilesystem
from ragfs.storage import ContentStore
from ragfs.utils import is_textual_mime_type


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def create_mcp_server(settings: Optional[Settings] = None) -> FastMCP:
    """Create an MCP server over one content store and query engine.

    Args:
        settings: Configuration to use; defaults to the environment's

    Returns:
        Configured FastMCP server instance
    """
    settings = settings or get_settings()
    mcp = FastMCP(name="ragfs")

    store = ContentStore(settings.RAGFS_DB_PATH)
    store.initialize()
    engine = QueryEngine(settings.RAGFS_ENGINE_DIR, settings.RAGFS_ENGINE_DATABASE)
    fs = VirtualFilesystem(store, engine)
    bridge = QueryBridge(store, engine, schema=settings.RAGFS_SYNC_SCHEMA)

    @mcp.tool()
    def ls(scope: str = "") -> str:
        """List files available to queries and retrieval.

        Args:
            scope: Optional scope (e.g. a chat id) to restrict stored files to

        Returns:
            One line per file with size and mime type
        """
        files = fs.ls(scope or None)
        if not files:
            return "No files found"
        return "\n".join(f"{f.name:<60} {_format_size(f.size):>10} {f.type}" for f in files)

    @mcp.tool()
    def read(name: str, scope: str = "") -> str:
        """Read a file's content.

        Args:
            name: File name (as shown in ls output)
            scope: Optional scope the file belongs to

        Returns:
            Text content for text files, or a short description otherwise
        """
        try:
            file = fs.get_file(name, scope or None)
        except NotFoundError as e:
            return f"Error: {e}"

        if not is_textual_mime_type(file.type):
            return f"[Binary file]\n  Name: {file.name}\n  Size: {file.size} bytes\n  Type: {file.type}"
        return file.read().decode("utf-8", errors="replace")

    @mcp.tool()
    def query(sql: str, scope: str = "") -> str:
        """Run a SQL query with DuckDB.

        Store tables are available as ragfs.files, ragfs.chunks and
        ragfs.attachments; files from ls can be read by name, e.g.
        SELECT * FROM 'data.csv'.

        Returns:
            The result as a Markdown table, or the error message
        """
        try:
            return bridge.query_to_markdown(sql, scope=scope or None) or "Query returned no columns"
        except EngineQueryError as e:
            return f"Error: {e}"

    @mcp.tool()
    def recall(query: str, limit: int = 10, scope: str = "") -> str:
        """Semantic search across embedded file chunks.

        Use this to find relevant content by concept, not just keyword.

        Args:
            query: Natural language description of what you're looking for
            limit: Maximum number of results to return (default: 10)
            scope: Optional scope to search within

        Returns:
            Ranked list of relevant chunks with similarity scores
        """
        backend = get_backend(settings=settings)
        results = store.recall(backend.embed(query), limit=limit, scope=scope or None)
        if not results:
            return f"No results found for: {query}"

        lines = []
        for i, r in enumerate(results, 1):
            text = r["text"][:200].replace("\n", " ")
            if len(r["text"]) > 200:
                text += "..."
            lines.append(f"{i}. [{r['similarity']:.3f}] {r['name']} #{r['chunk_index']}")
            lines.append(f"   {text}")
            lines.append("")
        return "\n".join(lines)

    return mcp
