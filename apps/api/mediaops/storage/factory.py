from __future__ import annotations

from uuid import UUID

from mediaops.core.config import Settings, get_settings
from mediaops.storage.base import BlobStore
from mediaops.storage.local import LocalBlobStore
from mediaops.storage.s3 import S3BlobStore, S3Config


def artifact_key(*, project_id: UUID, artifact_id: UUID) -> str:
    # One object per artifact row; retries overwrite the same key.
    return f"artifacts/{project_id}/{artifact_id}.zip"


def build_blob_store(settings: Settings | None = None) -> BlobStore:
    settings = settings or get_settings()
    match settings.BLOB_STORE:
        case "local":
            return LocalBlobStore(settings.LOCAL_BLOB_DIR)
        case "s3":
            return S3BlobStore(S3Config.from_settings(settings))
        case other:
            raise ValueError(f"Unsupported BLOB_STORE: {other}")
