"""File-based artifact storage implementation."""

import asyncio
import logging
import os
from pathlib import Path
from uuid import uuid4

from narration.lib.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class FileArtifactStore:
    """
    Filesystem-based implementation of ArtifactStore.

    Each key maps to a file under the root directory; content types
    are kept in a parallel tree so listing only sees the blobs.

    Directory structure:
        {storage_dir}/
        ├── .content-types/
        │   └── {article_id}/audio.mp3
        └── {article_id}/
            ├── audio.mp3
            ├── audio-metadata.json
            └── audio-chunk-0.mp3

    Writes go to a temporary file first and are moved into place, so a
    reader never sees a half-written blob.
    """

    CONTENT_TYPES_DIR = ".content-types"

    def __init__(self, storage_dir: str | Path):
        """
        Initialize the file artifact store.

        Args:
            storage_dir: Base directory for all artifacts
        """
        self._root = Path(storage_dir)

    @property
    def root(self) -> Path:
        return self._root

    def _path_for(self, key: str) -> Path:
        """Map a key to a path, refusing keys that escape the root."""
        parts = [part for part in key.split("/") if part]
        if not parts or any(part in (".", "..") for part in parts) or parts[0] == self.CONTENT_TYPES_DIR:
            raise PersistenceError(f"Invalid storage key: {key!r}", key=key, operation="resolve")
        return self._root.joinpath(*parts)

    def _content_type_path(self, key: str) -> Path:
        return self._root / self.CONTENT_TYPES_DIR / self._path_for(key).relative_to(self._root)

    async def get(self, key: str) -> bytes | None:
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(self._read, path)
        except Exception as e:
            raise PersistenceError(f"Failed to read artifact: {e}", key=key, operation="get")

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(self._write, path, bytes(data))
            await asyncio.to_thread(self._write, self._content_type_path(key), content_type.encode())
        except Exception as e:
            raise PersistenceError(f"Failed to write artifact: {e}", key=key, operation="put")
        logger.debug(f"Saved {key} to {path} ({len(data)} bytes)")

    async def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
            await asyncio.to_thread(self._content_type_path(key).unlink, missing_ok=True)
        except Exception as e:
            raise PersistenceError(f"Failed to delete artifact: {e}", key=key, operation="delete")

    async def head(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(path.is_file)
        except Exception as e:
            raise PersistenceError(f"Failed to check artifact: {e}", key=key, operation="head")

    async def list_keys(self, prefix: str) -> list[str]:
        try:
            return await asyncio.to_thread(self._list, prefix)
        except Exception as e:
            raise PersistenceError(f"Failed to list artifacts: {e}", key=prefix, operation="list")

    def content_type(self, key: str) -> str | None:
        """Content type recorded when the key was written."""
        path = self._content_type_path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    @staticmethod
    def _read(path: Path) -> bytes | None:
        if not path.is_file():
            return None
        return path.read_bytes()

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
        try:
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)
        finally:
            tmp_path.unlink(missing_ok=True)

    def _list(self, prefix: str) -> list[str]:
        if not self._root.exists():
            return []

        keys = []
        for path in self._root.rglob("*"):
            if not path.is_file() or path.name.startswith("."):
                continue
            relative = path.relative_to(self._root)
            if relative.parts[0] == self.CONTENT_TYPES_DIR:
                continue
            key = relative.as_posix()
            if key.startswith(prefix):
                keys.append(key)
        return sorted(keys)
