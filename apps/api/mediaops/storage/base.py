from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import quote


@dataclass(frozen=True)
class StoredBlob:
    storage_key: str
    size_bytes: int


class BlobStoreError(RuntimeError):
    pass


class BlobStore(ABC):
    """Object storage for media files and generated download archives."""

    @abstractmethod
    def put_bytes(self, *, key: str, data: bytes, content_type: str | None) -> StoredBlob: ...

    @abstractmethod
    def get_bytes(self, *, key: str) -> bytes: ...

    @abstractmethod
    def delete(self, *, key: str) -> None: ...

    def get_download_url(
        self,
        *,
        key: str,
        expires_in_seconds: int,
        filename: str | None,
        content_type: str | None,
    ) -> str | None:
        """A short-lived direct URL, or None when the API must stream the bytes itself."""
        _ = key, expires_in_seconds, filename, content_type
        return None


def build_attachment_disposition(filename: str) -> str:
    # RFC 6266: ASCII fallback plus the exact UTF-8 name for browsers that read filename*.
    fallback = filename.encode("ascii", "ignore").decode("ascii")
    fallback = fallback.replace("\\", "_").replace('"', "'") or "download"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"
