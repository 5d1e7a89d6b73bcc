from __future__ import annotations

import os
from pathlib import Path

from mediaops.storage.base import BlobStore, BlobStoreError, StoredBlob


class LocalBlobStore(BlobStore):
    """Filesystem store for dev and tests; never hands out URLs, so downloads stream."""

    def __init__(self, root_dir: str) -> None:
        self._root = Path(root_dir).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        path = (self._root / key.lstrip("/")).resolve()
        if not path.is_relative_to(self._root) or path == self._root:
            raise BlobStoreError(f"Key escapes blob root: {key}")
        return path

    def put_bytes(self, *, key: str, data: bytes, content_type: str | None) -> StoredBlob:
        _ = content_type
        path = self._resolve(key)
        partial = path.with_name(f".{path.name}.partial")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            partial.write_bytes(data)
            # Readers never see a half-written zip.
            os.replace(partial, path)
        except OSError as e:
            raise BlobStoreError(f"write {key}: {e}") from e
        return StoredBlob(storage_key=key, size_bytes=len(data))

    def get_bytes(self, *, key: str) -> bytes:
        try:
            return self._resolve(key).read_bytes()
        except OSError as e:
            raise BlobStoreError(f"read {key}: {e}") from e

    def delete(self, *, key: str) -> None:
        path = self._resolve(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise BlobStoreError(f"delete {key}: {e}") from e
        self._prune_empty_dirs(path.parent)

    def _prune_empty_dirs(self, directory: Path) -> None:
        # Drop per-project folders once their last media file is gone.
        while directory != self._root:
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent
