from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from mediaops.models.enums import JobStatus, JobType
from mediaops.models.jobs import BgJob


def enqueue_job(
    *,
    session: Session,
    job_type: JobType,
    organization_id: UUID | None,
    payload: dict[str, Any],
    dedupe_key: str | None,
    run_at: datetime | None = None,
    max_attempts: int = 5,
) -> UUID | None:
    """Queue a side effect inside the caller's transaction.

    Nothing runs until the caller commits, so a rolled-back request never
    sends an email or touches a calendar. Returns None when a job with the
    same organization, type and dedupe key already exists.
    """
    stmt = (
        insert(BgJob)
        .values(
            organization_id=organization_id,
            type=job_type,
            status=JobStatus.queued,
            run_at=run_at if run_at is not None else func.now(),
            max_attempts=max_attempts,
            dedupe_key=dedupe_key,
            payload=payload,
        )
        # The partial unique index on (organization_id, type, dedupe_key) is the arbiter.
        .on_conflict_do_nothing()
        .returning(BgJob.id)
    )
    return session.execute(stmt).scalar_one_or_none()
