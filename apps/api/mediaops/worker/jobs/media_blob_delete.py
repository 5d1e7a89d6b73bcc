from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from mediaops.storage.factory import build_blob_store
from mediaops.worker.errors import PermanentJobError

logger = logging.getLogger("mediaops.worker")


def media_blob_delete(*, session: Session, payload: dict) -> None:
    _ = session
    storage_key = payload.get("storage_key")
    if not storage_key:
        raise PermanentJobError("media_blob_delete payload missing storage_key")

    build_blob_store().delete(key=str(storage_key))
    logger.info("media_blob_delete: removed %s", storage_key)
