from __future__ import annotations

import logging

import httpx
from sqlalchemy.orm import Session

from mediaops.core.config import get_settings
from mediaops.services.nylas import NylasApiError, delete_event
from mediaops.worker.errors import PermanentJobError

logger = logging.getLogger("mediaops.worker")


def calendar_remove(*, session: Session, payload: dict) -> None:
    """Delete an external calendar event whose local row was already detached."""
    _ = session
    grant_id = payload.get("grant_id")
    event_id = payload.get("external_event_id")
    if not grant_id or not event_id:
        raise PermanentJobError("calendar_remove payload missing grant_id or external_event_id")

    settings = get_settings()
    if not settings.NYLAS_API_KEY:
        logger.info("calendar_remove: calendar integration not configured; skipping %s", event_id)
        return

    with httpx.Client(timeout=20.0) as client:
        try:
            delete_event(
                client,
                base_url=settings.NYLAS_API_URL,
                api_key=settings.NYLAS_API_KEY,
                grant_id=str(grant_id),
                event_id=str(event_id),
            )
        except NylasApiError as e:
            if 400 <= e.status_code < 500 and e.status_code != 429:
                raise PermanentJobError(str(e)) from e
            raise

    logger.info(
        "calendar_remove: event %s removed (project %s)", event_id, payload.get("project_id")
    )
