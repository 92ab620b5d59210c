"""Input source handlers (ingesters) for ragfs."""

import logging
from pathlib import Path
from typing import Optional

from ragfs.errors import ValidationError
from ragfs.ingesters.folder_ingester import FolderIngester
from ragfs.ingesters.zip_ingester import ZipIngester
from ragfs.models import StoredFile
from ragfs.protocols import Ingester
from ragfs.storage import ContentStore

logger = logging.getLogger(__name__)

# Registry of available ingesters, first match wins
_INGESTERS: list[Ingester] = [
    ZipIngester(),
    FolderIngester(),
]


def get_ingester(source: Path | str) -> Optional[Ingester]:
    """Find an ingester that can handle the given source, or None."""
    source_path = Path(source)
    for ingester in _INGESTERS:
        if ingester.can_handle(source_path):
            return ingester
    return None


def register_ingester(ingester: Ingester) -> None:
    """Register a custom ingester (for plugins/extensions)."""
    _INGESTERS.append(ingester)


def import_source(
    store: ContentStore, source: Path | str, scope: Optional[str] = None
) -> list[StoredFile]:
    """Add every file of a folder or zip to the store.

    Files whose content is already stored are returned as the existing
    record. With a scope, each file is also attached to it.

    Raises:
        ValidationError: If no ingester handles the source
    """
    source_path = Path(source)
    ingester = get_ingester(source_path)
    if ingester is None:
        raise ValidationError(f"Cannot import {source}: expected a folder or a .zip file")

    stored = []
    for file_input in ingester.ingest(source_path):
        file = store.find_or_create(file_input)
        if scope is not None:
            store.attach(scope, file)
        stored.append(file)

    logger.info(f"Imported {len(stored)} files from {source_path} ({ingester.source_type})")
    return stored


__all__ = [
    "get_ingester",
    "register_ingester",
    "import_source",
    "ZipIngester",
    "FolderIngester",
]
