"""Content-addressed storage for ragfs."""

from ragfs.storage.schema import SYNC_TABLES
from ragfs.storage.store import ContentStore

__all__ = ["ContentStore", "SYNC_TABLES"]
