"""Database schema for the ragfs content store."""

SCHEMA = """
-- Files table: one row per distinct content, keyed by its SHA-256
CREATE TABLE IF NOT EXISTS files (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    size INTEGER NOT NULL,
    content BLOB NOT NULL,
    text TEXT,                 -- extracted text, NULL until known
    created TEXT NOT NULL,     -- ISO-8601, UTC
    metadata TEXT NOT NULL DEFAULT '{}'
);

-- Chunks table: ordered text spans of a file, replaced as a whole
CREATE TABLE IF NOT EXISTS chunks (
    file_id TEXT NOT NULL,
    chunk_index INTEGER NOT NULL,
    text TEXT NOT NULL,
    embedding BLOB,            -- float32 vector, NULL until embedded
    metadata TEXT NOT NULL DEFAULT '{}',
    PRIMARY KEY (file_id, chunk_index),
    FOREIGN KEY (file_id) REFERENCES files(id)
);

-- Attachments table: which files belong to which scope (e.g. a chat)
CREATE TABLE IF NOT EXISTS attachments (
    scope TEXT NOT NULL,
    file_id TEXT NOT NULL,
    created TEXT NOT NULL,
    PRIMARY KEY (scope, file_id),
    FOREIGN KEY (file_id) REFERENCES files(id)
);

CREATE INDEX IF NOT EXISTS idx_files_name ON files(name);
CREATE INDEX IF NOT EXISTS idx_attachments_file ON attachments(file_id);
"""

# Tables that can be mirrored into the query engine, with their engine
# column types. Binary content and raw vectors stay in the store.
SYNC_TABLES: dict[str, dict[str, str]] = {
    "files": {
        "id": "VARCHAR",
        "name": "VARCHAR",
        "type": "VARCHAR",
        "size": "BIGINT",
        "text": "VARCHAR",
        "created": "TIMESTAMP",
        "metadata": "VARCHAR",
    },
    "chunks": {
        "file_id": "VARCHAR",
        "chunk_index": "INTEGER",
        "text": "VARCHAR",
        "dimensions": "INTEGER",
        "metadata": "VARCHAR",
    },
    "attachments": {
        "scope": "VARCHAR",
        "file_id": "VARCHAR",
        "created": "TIMESTAMP",
    },
}
