"""A unified filesystem view over stored files and query-engine files.

Application code lists, reads and removes "files" here without knowing
whether they live in the content store (attachments, imports) or in the
query engine's own namespace (files created by queries or copied in).
"""

import base64
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ragfs.engine import EngineFile, QueryEngine
from ragfs.errors import NotFoundError
from ragfs.models import StoredFile
from ragfs.storage import ContentStore
from ragfs.utils import guess_mime_type

logger = logging.getLogger(__name__)


class VirtualFile(ABC):
    """Generic handle for a file in either backend."""

    id: str
    name: str
    size: int
    type: str

    @abstractmethod
    def read(self) -> bytes:
        """Return the file's bytes."""

    @abstractmethod
    def remove(self) -> None:
        """Delete the file from the backend that holds it."""

    @abstractmethod
    def to_url(self) -> str:
        """A URL a viewer can load the file from."""

    def download(self, dest: Path | str) -> Path:
        """Write the file to ``dest`` (a directory or a file path)."""
        target = Path(dest)
        if target.is_dir():
            target = target / self.name
        target.write_bytes(self.read())
        return target

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, size={self.size}, type={self.type!r})"


class StoredFileAdapter(VirtualFile):
    """The content-store version of a VirtualFile."""

    def __init__(self, store: ContentStore, stored_file: StoredFile):
        self.store = store
        self.stored_file = stored_file
        self.id = stored_file.id
        self.name = stored_file.name
        self.size = stored_file.size
        self.type = stored_file.type

    def read(self) -> bytes:
        return self.stored_file.content

    def remove(self) -> None:
        self.store.delete(self.stored_file)

    def to_url(self) -> str:
        encoded = base64.b64encode(self.stored_file.content).decode("ascii")
        return f"data:{self.type};base64,{encoded}"


class EngineFileAdapter(VirtualFile):
    """The query-engine version of a VirtualFile."""

    def __init__(self, engine: QueryEngine, engine_file: EngineFile):
        self.engine = engine
        self.id = engine_file.id
        self.name = engine_file.name
        self.size = engine_file.size
        self.type = guess_mime_type(engine_file.name)
        self._path = engine_file.path

    def read(self) -> bytes:
        return self.engine.read_file(self.name)

    def remove(self) -> None:
        self.engine.drop_file(self.name)

    def to_url(self) -> str:
        return self._path.resolve().as_uri()


class VirtualFilesystem:
    """Merged listing of store and engine files.

    When both backends hold a file with the same name, the store's file
    is the one listed.
    """

    def __init__(self, store: ContentStore, engine: Optional[QueryEngine] = None):
        self.store = store
        self.engine = engine

    def ls(self, scope: Optional[str] = None) -> list[VirtualFile]:
        """List engine files, then store files for the scope (all if None)."""
        files: dict[str, VirtualFile] = {}

        if self.engine is not None:
            for engine_file in self.engine.glob_files():
                files[engine_file.name] = EngineFileAdapter(self.engine, engine_file)

        # Oldest first, so the newest upload of a repeated name wins
        for stored in reversed(self.store.list_files(scope=scope)):
            files[stored.name] = StoredFileAdapter(self.store, stored)

        return list(files.values())

    def get_file(self, name: str, scope: Optional[str] = None) -> VirtualFile:
        for file in self.ls(scope):
            if file.name == name:
                return file
        raise NotFoundError(f'File not found: "{name}"')

    def exists(self, name: str, scope: Optional[str] = None) -> bool:
        try:
            self.get_file(name, scope)
            return True
        except NotFoundError:
            return False

    def read_file(self, name: str, scope: Optional[str] = None) -> bytes:
        return self.get_file(name, scope).read()

    def remove_file(self, name: str, scope: Optional[str] = None) -> None:
        file = self.get_file(name, scope)
        file.remove()
        logger.info(f"Removed {file!r}")

    def file_to_url(self, name: str, scope: Optional[str] = None) -> str:
        return self.get_file(name, scope).to_url()

    def download_file(self, name: str, dest: Path | str, scope: Optional[str] = None) -> Path:
        return self.get_file(name, scope).download(dest)
