"""Exception hierarchy for ragfs."""

import re
from typing import Optional


class RagfsError(Exception):
    """Base class for all ragfs errors."""


class ValidationError(RagfsError):
    """Invalid input (bad file name, mime type, missing chunks...)."""


class NotFoundError(RagfsError):
    """Unknown file id or name."""


class BackendError(RagfsError):
    """An embedding backend call failed or returned malformed vectors."""


class CancelledError(RagfsError):
    """An embedding run was cancelled between batches."""


class EngineQueryError(RagfsError):
    """A query engine failure, carrying the engine's own message."""


class MissingTableError(EngineQueryError):
    """The engine reported that a table (or its schema) does not exist."""

    PATTERN = re.compile(r"(?:Table|Schema) with name \"?(\w+)\"? does not exist")

    def __init__(self, message: str, table_name: str):
        super().__init__(message)
        self.table_name = table_name

    @classmethod
    def parse(cls, message: str) -> Optional[str]:
        """Return the missing object's name, or None if the message doesn't match."""
        match = cls.PATTERN.search(message)
        return match.group(1) if match else None


class MissingFileError(EngineQueryError):
    """The engine could not find a file it was asked to read."""

    PATTERN = re.compile(r'No files found that match the pattern "([^"]+)"')

    def __init__(self, message: str, file_path: str):
        super().__init__(message)
        self.file_path = file_path

    @classmethod
    def parse(cls, message: str) -> Optional[str]:
        """Return the missing file path, or None if the message doesn't match."""
        match = cls.PATTERN.search(message)
        return match.group(1) if match else None
