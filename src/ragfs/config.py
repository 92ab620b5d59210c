"""Configuration management for ragfs."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ragfs.chunkers import ChunkingPolicy

# .env may be unreadable in sandboxed environments; plain env vars still apply
try:
    load_dotenv()
except (PermissionError, OSError):
    pass


class Settings(BaseSettings):
    """Settings loaded from environment variables (or a .env file)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    RAGFS_ENV: str = Field(default="dev", description="Environment: dev, test, prod")

    # Storage
    RAGFS_DB_PATH: str = Field(default="ragfs.db", description="SQLite content store path")
    RAGFS_ENGINE_DIR: str = Field(
        default=".ragfs-engine", description="Directory backing the query engine's files"
    )
    RAGFS_ENGINE_DATABASE: str = Field(
        default=":memory:", description="DuckDB database (':memory:' or a file path)"
    )
    RAGFS_SYNC_SCHEMA: str = Field(
        default="ragfs", description="Engine schema holding synchronized store tables"
    )

    # Embeddings
    EMBEDDING_BACKEND: Literal["local", "openai"] = Field(
        default="local", description="Which embedding backend to use"
    )
    LOCAL_EMBEDDING_MODEL: str = Field(
        default="all-MiniLM-L6-v2", description="sentence-transformers model name"
    )
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    OPENAI_EMBEDDING_DIM: int = Field(default=1536, description="OpenAI embedding dimension")
    OPENAI_TIMEOUT: float = Field(default=60.0, description="OpenAI request timeout (seconds)")
    EMBEDDING_BATCH_SIZE: int | None = Field(
        default=None, description="Override the backend's default batch size"
    )

    # Chunking
    MAX_CHARS_PER_CHUNK: int = Field(default=1000, description="Chunk size limit in characters")
    CHUNK_OVERLAP_PERCENTAGE: int = Field(
        default=25, ge=0, le=100, description="Overlap as a percentage of chunk size"
    )
    PRESERVE_SEPARATORS: bool = Field(
        default=True, description="Keep blank-line separators inside chunks"
    )
    MIN_CHUNK_FILE_CHARS: int = Field(
        default=512, description="Texts shorter than this are embedded as one chunk"
    )

    def chunking_policy(self) -> ChunkingPolicy:
        """Build the chunking policy described by these settings."""
        return ChunkingPolicy(
            max_chars_per_chunk=self.MAX_CHARS_PER_CHUNK,
            overlap_percentage=self.CHUNK_OVERLAP_PERCENTAGE,
            preserve_separators=self.PRESERVE_SEPARATORS,
            min_file_chars=self.MIN_CHUNK_FILE_CHARS,
        )


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
