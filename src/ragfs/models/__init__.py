"""Data models for ragfs."""

from ragfs.models.file import Chunk, FileInput, StoredFile, content_hash, validate_file_fields

__all__ = ["StoredFile", "Chunk", "FileInput", "content_hash", "validate_file_fields"]
