from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from mediaops.models.enums import JobType
from mediaops.worker.jobs.calendar_remove import calendar_remove
from mediaops.worker.jobs.calendar_sync import calendar_sync
from mediaops.worker.jobs.delivery_email import delivery_email
from mediaops.worker.jobs.media_blob_delete import media_blob_delete


def handle_job(*, session: Session, job_id: UUID, job_type: JobType, payload: dict) -> None:
    _ = job_id
    if job_type == JobType.calendar_sync:
        calendar_sync(session=session, payload=payload)
        return
    if job_type == JobType.calendar_remove:
        calendar_remove(session=session, payload=payload)
        return
    if job_type == JobType.delivery_email:
        delivery_email(session=session, payload=payload)
        return
    if job_type == JobType.media_blob_delete:
        media_blob_delete(session=session, payload=payload)
        return

    raise NotImplementedError(f"Job type not implemented: {job_type.value}")
