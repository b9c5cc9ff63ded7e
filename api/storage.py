"""
Physical storage of uploaded files.

Uploads are written under a single root directory, one file per dataset
identifier. Deleting files is explicit: the ingestion pipeline itself never
touches the disk.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Union

import aiofiles
import aiofiles.os

from .shared.logger import get_logger

logger = get_logger(__name__)


class UploadStore:
    """Stores raw upload bytes keyed by dataset identifier."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def path_for(self, identifier: str) -> Path:
        """Resolve the file path of ``identifier``, refusing anything outside the root."""
        root = self.root.resolve()
        path = (root / identifier).resolve()
        if path.parent != root:
            raise ValueError(f"Invalid dataset identifier: {identifier!r}")
        return path

    async def write(self, identifier: str, data: bytes) -> Path:
        path = self.path_for(identifier)
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)
        logger.debug("Wrote %d bytes to %s", len(data), path)
        return path

    async def read(self, identifier: str) -> bytes:
        path = self.path_for(identifier)
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    async def delete(self, identifier: str) -> bool:
        """Remove the stored file. Returns False if it was already gone."""
        path = self.path_for(identifier)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        logger.info("Removed stored upload %s", identifier)
        return True


@lru_cache(maxsize=1)
def get_upload_store() -> UploadStore:
    from .app_config import get_settings

    return UploadStore(get_settings().upload_dir)
