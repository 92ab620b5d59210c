"""Virtual filesystem over the content store and the query engine."""

from ragfs.fs.virtual import (
    EngineFileAdapter,
    StoredFileAdapter,
    VirtualFile,
    VirtualFilesystem,
)

__all__ = ["VirtualFile", "VirtualFilesystem", "StoredFileAdapter", "EngineFileAdapter"]
