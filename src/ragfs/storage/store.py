"""SQLite-backed content-addressed file store."""

import fnmatch
import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional, Sequence, Union

import numpy as np

from ragfs.errors import NotFoundError, ValidationError
from ragfs.models import Chunk, FileInput, StoredFile, content_hash, validate_file_fields
from ragfs.storage.schema import SCHEMA, SYNC_TABLES
from ragfs.utils import decode_text, guess_mime_type

logger = logging.getLogger(__name__)

FileRef = Union[StoredFile, str]


def _file_id(file: FileRef) -> str:
    return file.id if isinstance(file, StoredFile) else file


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _engine_timestamp(value: str) -> str:
    """ISO timestamp -> naive UTC 'YYYY-MM-DD HH:MM:SS.ffffff' for the engine."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed.strftime("%Y-%m-%d %H:%M:%S.%f")


def _encode_embedding(embedding: Sequence[float]) -> Optional[bytes]:
    if len(embedding) == 0:
        return None
    return np.asarray(embedding, dtype=np.float32).tobytes()


def _decode_embedding(blob: Optional[bytes]) -> list[float]:
    if not blob:
        return []
    return np.frombuffer(blob, dtype=np.float32).tolist()


class ContentStore:
    """Content-addressed storage for files, their text, chunks and embeddings.

    A file's id is the SHA-256 of its bytes, so adding the same content
    twice (under any name) yields the same single record.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._locks: dict[str, list] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create schema if not exists."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def _hash_lock(self, file_id: str) -> Iterator[None]:
        """Serialize work on one file id; other ids are not blocked."""
        with self._locks_guard:
            entry = self._locks.setdefault(file_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[file_id]

    # Creation and lookup

    def find_or_create(self, source: FileInput | Path | str, **overrides: Any) -> StoredFile:
        """Return the stored file with this content, adding it if new.

        Args:
            source: A FileInput descriptor, or a path to read from disk
            **overrides: For paths, values replacing the derived name, type
                or text; a ``metadata`` dict is merged over the derived one

        Returns:
            The existing record untouched, or the newly created one
        """
        file_input = self._to_input(source, overrides)
        validate_file_fields(file_input.name, file_input.type)
        file_id = content_hash(file_input.content)

        with self._hash_lock(file_id):
            existing = self.find_by_id(file_id)
            if existing is not None:
                logger.debug(f"Content already stored as {existing.name} ({file_id[:12]})")
                return existing

            stored = StoredFile.from_input(file_input)
            with self.connection() as conn:
                cursor = conn.execute(
                    """INSERT OR IGNORE INTO files
                       (id, name, type, size, content, text, created, metadata)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        stored.id,
                        stored.name,
                        stored.type,
                        stored.size,
                        stored.content,
                        stored.text,
                        stored.created.isoformat(),
                        json.dumps(stored.metadata, default=str),
                    ),
                )
                inserted = cursor.rowcount == 1

        if not inserted:
            # Another process stored the same content first
            return self.get(file_id)

        logger.info(f"Stored {stored.name} ({stored.size} bytes, {file_id[:12]})")
        return stored

    @staticmethod
    def _to_input(source: FileInput | Path | str, overrides: dict[str, Any]) -> FileInput:
        if isinstance(source, FileInput):
            return source

        path = Path(source)
        if not path.is_file():
            raise NotFoundError(f"No such file: {path}")
        content = path.read_bytes()
        modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)

        metadata = {"last_modified": modified.isoformat()}
        metadata.update(overrides.get("metadata") or {})
        name = overrides.get("name") or path.name
        return FileInput(
            name=name,
            type=overrides.get("type") or guess_mime_type(name),
            content=content,
            text=overrides["text"] if "text" in overrides else decode_text(name, content),
            metadata=metadata,
        )

    def find_by_id(self, file_id: str, with_chunks: bool = True) -> Optional[StoredFile]:
        """Find a file by id (content hash)."""
        with self.connection() as conn:
            row = conn.execute("SELECT * FROM files WHERE id = ?", (file_id,)).fetchone()
            if row is None:
                return None
            chunks = self._load_chunks(conn, file_id) if with_chunks else []
        return self._row_to_file(row, chunks)

    def find_by_content(self, content: bytes) -> Optional[StoredFile]:
        """Find the file holding exactly these bytes."""
        return self.find_by_id(content_hash(content))

    def get(self, file_id: str) -> StoredFile:
        """Like find_by_id, but raises NotFoundError for unknown ids."""
        stored = self.find_by_id(file_id)
        if stored is None:
            raise NotFoundError(f"File not found: {file_id}")
        return stored

    def delete(self, file: FileRef) -> bool:
        """Delete a file with its chunks and attachments.

        Returns:
            True if a file was deleted, False if the id was unknown
        """
        file_id = _file_id(file)
        with self._hash_lock(file_id):
            with self.connection() as conn:
                conn.execute("DELETE FROM chunks WHERE file_id = ?", (file_id,))
                conn.execute("DELETE FROM attachments WHERE file_id = ?", (file_id,))
                cursor = conn.execute("DELETE FROM files WHERE id = ?", (file_id,))
                deleted = cursor.rowcount > 0
        if deleted:
            logger.info(f"Deleted file {file_id[:12]}")
        return deleted

    # Field-level updates

    def set_metadata(self, file: FileRef, key: str, value: Any) -> None:
        """Set one metadata key, leaving the other keys as they are."""
        self.update_metadata(file, {key: value})

    def update_metadata(self, file: FileRef, values: Mapping[str, Any]) -> None:
        """Set several metadata keys in one transaction."""
        file_id = _file_id(file)
        with self.connection() as conn:
            for key, value in values.items():
                json_path = '$."' + key.replace('"', '\\"') + '"'
                cursor = conn.execute(
                    "UPDATE files SET metadata = json_set(metadata, ?, json(?)) WHERE id = ?",
                    (json_path, json.dumps(value, default=str), file_id),
                )
                if cursor.rowcount == 0:
                    raise NotFoundError(f"File not found: {file_id}")
        if isinstance(file, StoredFile):
            file.metadata.update(values)

    def set_text(self, file: FileRef, text: Optional[str]) -> None:
        file_id = _file_id(file)
        with self.connection() as conn:
            cursor = conn.execute("UPDATE files SET text = ? WHERE id = ?", (text, file_id))
            if cursor.rowcount == 0:
                raise NotFoundError(f"File not found: {file_id}")
        if isinstance(file, StoredFile):
            file.text = text

    def rename(self, file: FileRef, name: str) -> None:
        """Attach the same content under a different name."""
        if not name or not name.strip():
            raise ValidationError("File name is required")
        file_id = _file_id(file)
        with self.connection() as conn:
            cursor = conn.execute("UPDATE files SET name = ? WHERE id = ?", (name, file_id))
            if cursor.rowcount == 0:
                raise NotFoundError(f"File not found: {file_id}")
        if isinstance(file, StoredFile):
            file.name = name

    def set_chunks(self, file: FileRef, chunks: list[Chunk]) -> None:
        """Replace a file's chunk list; ``metadata["index"]`` follows position."""
        file_id = _file_id(file)
        for position, chunk in enumerate(chunks):
            chunk.metadata["index"] = position

        with self.connection() as conn:
            exists = conn.execute("SELECT 1 FROM files WHERE id = ?", (file_id,)).fetchone()
            if exists is None:
                raise NotFoundError(f"File not found: {file_id}")
            conn.execute("DELETE FROM chunks WHERE file_id = ?", (file_id,))
            conn.executemany(
                """INSERT INTO chunks (file_id, chunk_index, text, embedding, metadata)
                   VALUES (?, ?, ?, ?, ?)""",
                [
                    (
                        file_id,
                        position,
                        chunk.text,
                        _encode_embedding(chunk.embedding),
                        json.dumps(chunk.metadata, default=str),
                    )
                    for position, chunk in enumerate(chunks)
                ],
            )
        if isinstance(file, StoredFile):
            file.chunks = chunks
        logger.debug(f"Stored {len(chunks)} chunks for {file_id[:12]}")

    def update_chunk_embeddings(
        self, file: FileRef, embeddings: Mapping[int, Sequence[float]]
    ) -> None:
        """Write embeddings for the chunks at the given indexes."""
        file_id = _file_id(file)
        with self.connection() as conn:
            for index, embedding in embeddings.items():
                cursor = conn.execute(
                    "UPDATE chunks SET embedding = ? WHERE file_id = ? AND chunk_index = ?",
                    (_encode_embedding(embedding), file_id, index),
                )
                if cursor.rowcount == 0:
                    raise NotFoundError(f"Chunk {index} not found for file {file_id}")
        if isinstance(file, StoredFile):
            for index, embedding in embeddings.items():
                file.chunks[index].embedding = list(embedding)

    # Scopes

    def attach(self, scope: str, file: FileRef) -> None:
        """Make a file part of a scope (e.g. a chat's attachments)."""
        with self.connection() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO attachments (scope, file_id, created) VALUES (?, ?, ?)",
                (scope, _file_id(file), _now()),
            )

    def detach(self, scope: str, file: FileRef) -> bool:
        with self.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM attachments WHERE scope = ? AND file_id = ?",
                (scope, _file_id(file)),
            )
            return cursor.rowcount > 0

    def files_for(self, scope: str) -> list[StoredFile]:
        """All files attached to a scope."""
        return self.list_files(scope=scope)

    # Queries

    def list_files(
        self,
        pattern: str = "*",
        limit: Optional[int] = None,
        scope: Optional[str] = None,
    ) -> list[StoredFile]:
        """List files whose name matches a glob pattern, newest first.

        Supports ``*`` (any characters), ``?`` (one character) and ``[...]``.
        Chunks are not loaded; use find_by_id for a file's chunks.
        """
        with self.connection() as conn:
            if scope is None:
                cursor = conn.execute("SELECT * FROM files ORDER BY created DESC, name")
            else:
                cursor = conn.execute(
                    """SELECT f.* FROM files f
                       JOIN attachments a ON a.file_id = f.id
                       WHERE a.scope = ? ORDER BY f.created DESC, f.name""",
                    (scope,),
                )
            rows = [row for row in cursor if fnmatch.fnmatchcase(row["name"], pattern)]

        if limit is not None:
            rows = rows[:limit]
        return [self._row_to_file(row, []) for row in rows]

    def table_records(self, table: str) -> list[dict[str, Any]]:
        """Rows of a synchronizable table, serialized for the query engine."""
        if table not in SYNC_TABLES:
            raise ValidationError(f"Not a synchronizable table: {table}")

        with self.connection() as conn:
            if table == "files":
                cursor = conn.execute(
                    "SELECT id, name, type, size, text, created, metadata FROM files ORDER BY created"
                )
            elif table == "chunks":
                cursor = conn.execute(
                    """SELECT file_id, chunk_index, text,
                              COALESCE(length(embedding) / 4, 0) AS dimensions, metadata
                       FROM chunks ORDER BY file_id, chunk_index"""
                )
            else:
                cursor = conn.execute(
                    "SELECT scope, file_id, created FROM attachments ORDER BY scope, created"
                )
            records = [dict(row) for row in cursor]

        for record in records:
            if "created" in record:
                record["created"] = _engine_timestamp(record["created"])
        return records

    def recall(
        self,
        query_embedding: Sequence[float],
        limit: int = 10,
        scope: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Find the chunks most similar to an embedding (cosine similarity)."""
        query = np.asarray(query_embedding, dtype=np.float32)
        sql = """SELECT c.file_id, f.name, c.chunk_index, c.text, c.embedding
                 FROM chunks c JOIN files f ON f.id = c.file_id
                 WHERE c.embedding IS NOT NULL"""
        params: tuple = ()
        if scope is not None:
            sql += " AND c.file_id IN (SELECT file_id FROM attachments WHERE scope = ?)"
            params = (scope,)

        results = []
        with self.connection() as conn:
            for row in conn.execute(sql, params):
                stored = np.frombuffer(row["embedding"], dtype=np.float32)
                if stored.shape != query.shape:
                    continue
                results.append(
                    {
                        "file_id": row["file_id"],
                        "name": row["name"],
                        "chunk_index": row["chunk_index"],
                        "text": row["text"],
                        "similarity": self._cosine_similarity(query, stored),
                    }
                )

        results.sort(key=lambda r: r["similarity"], reverse=True)
        return results[:limit]

    def stats(self) -> dict[str, int]:
        """Counts of files, bytes, chunks and embedded chunks."""
        with self.connection() as conn:
            files = conn.execute("SELECT COUNT(*), COALESCE(SUM(size), 0) FROM files").fetchone()
            chunks = conn.execute(
                "SELECT COUNT(*), COUNT(embedding) FROM chunks"
            ).fetchone()
        return {
            "files": files[0],
            "total_bytes": files[1],
            "chunks": chunks[0],
            "embedded_chunks": chunks[1],
        }

    # Row mapping

    @staticmethod
    def _load_chunks(conn: sqlite3.Connection, file_id: str) -> list[Chunk]:
        cursor = conn.execute(
            "SELECT text, embedding, metadata FROM chunks WHERE file_id = ? ORDER BY chunk_index",
            (file_id,),
        )
        return [
            Chunk(
                text=row["text"],
                embedding=_decode_embedding(row["embedding"]),
                metadata=json.loads(row["metadata"]),
            )
            for row in cursor
        ]

    @staticmethod
    def _row_to_file(row: sqlite3.Row, chunks: list[Chunk]) -> StoredFile:
        return StoredFile(
            id=row["id"],
            name=row["name"],
            type=row["type"],
            content=bytes(row["content"]),
            text=row["text"],
            metadata=json.loads(row["metadata"]),
            chunks=chunks,
            created=datetime.fromisoformat(row["created"]),
        )

    @staticmethod
    def _cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
        """Compute cosine similarity between two vectors."""
        norm_a = np.linalg.norm(a)
        norm_b = np.linalg.norm(b)
        if norm_a == 0 or norm_b == 0:
            return 0.0
        return float(np.dot(a, b) / (norm_a * norm_b))
