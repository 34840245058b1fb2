"""Key/value blob stores used by the flat-document deployment.

A blob store only knows `get(key) -> str | None` and `set(key, blob)`.
`MemoryBlobStore` keeps blobs in a dict; `JsonFileBlobStore` writes one
`<key>.json` file per key under a directory using `aiofiles`.
"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import aiofiles

from utils.errors import PersistenceError

LOGGER = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+$")


class BlobStore(ABC):
    """Minimal durable key/value contract."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the blob stored under `key`, or None if absent."""

    @abstractmethod
    async def set(self, key: str, blob: str) -> None:
        """Store `blob` under `key`, replacing any previous value."""


class MemoryBlobStore(BlobStore):
    """Process-local store, used for tests and the `memory` backend."""

    def __init__(self) -> None:
        self._blobs: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    async def set(self, key: str, blob: str) -> None:
        self._blobs[key] = blob


class JsonFileBlobStore(BlobStore):
    """Store each key as `<base_dir>/<key>.json`.

    Writes go to a temporary sibling file that is then renamed over the
    target, so readers never observe a half-written document.
    """

    def __init__(self, base_dir: Path | str) -> None:
        self.base_dir = Path(base_dir).expanduser()

    def _path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid blob key: {key!r}")
        return self.base_dir / f"{key}.json"

    async def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                return await f.read()
        except OSError as exc:
            LOGGER.error("Failed to read blob %s: %s", path, exc)
            raise PersistenceError(f"Could not read stored {key!r} data.") from exc

    async def set(self, key: str, blob: str) -> None:
        path = self._path_for(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(blob)
            os.replace(tmp_path, path)
        except OSError as exc:
            LOGGER.error("Failed to write blob %s: %s", path, exc)
            raise PersistenceError(f"Could not save {key!r} data.") from exc
