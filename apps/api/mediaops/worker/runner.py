from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.orm import Session

from mediaops.core.config import Settings
from mediaops.core.metrics import observe_job
from mediaops.core.otel import worker_span
from mediaops.db.session import session_scope
from mediaops.models.enums import JobType
from mediaops.worker.artifacts import poll_artifacts
from mediaops.worker.errors import PermanentJobError
from mediaops.worker.handlers import handle_job

logger = logging.getLogger("mediaops.worker")

# Oldest due job first; rows held by another worker are skipped, not waited on.
_CLAIM_SQL = text(
    """
    UPDATE bg_jobs
    SET status = 'running', locked_at = now(), locked_by = :worker_id, updated_at = now()
    WHERE id = (
      SELECT id FROM bg_jobs
      WHERE status = 'queued' AND run_at <= now()
      ORDER BY run_at
      LIMIT 1
      FOR UPDATE SKIP LOCKED
    )
    RETURNING id, type, payload
    """
)

_SUCCEED_SQL = text(
    "UPDATE bg_jobs SET status = 'succeeded', last_error = NULL, updated_at = now() WHERE id = :id"
)

# Failing the last allowed attempt is terminal; otherwise requeue with exponential backoff.
_FAIL_SQL = text(
    """
    UPDATE bg_jobs
    SET attempts = attempts + 1,
        last_error = :error,
        status = CAST(
          CASE WHEN :permanent OR attempts + 1 >= max_attempts THEN 'failed' ELSE 'queued' END
          AS job_status
        ),
        run_at = CASE
          WHEN :permanent OR attempts + 1 >= max_attempts THEN run_at
          ELSE now() + make_interval(
            secs => LEAST(:max_backoff, 0.5 * power(2, LEAST(attempts + 1, 8)))
          )
        END,
        updated_at = now()
    WHERE id = :id
    RETURNING status
    """
)


@dataclass(frozen=True)
class WorkerConfig:
    poll_interval_seconds: float = 0.5
    artifact_poll_interval_seconds: float = 5.0
    max_backoff_seconds: float = 60.0
    worker_id: str = socket.gethostname()

    @classmethod
    def from_settings(cls, settings: Settings) -> WorkerConfig:
        return cls(artifact_poll_interval_seconds=settings.ARTIFACT_POLL_INTERVAL_SECONDS)


@dataclass(frozen=True)
class ClaimedJob:
    id: UUID
    type: JobType
    payload: dict[str, Any]


def run_worker_forever(config: WorkerConfig) -> None:
    """Alternate artifact polling with job draining until the process is stopped."""
    logger.info("worker %s starting", config.worker_id)
    next_artifact_poll = 0.0
    while True:
        now = time.monotonic()
        built_artifact = False
        if now >= next_artifact_poll:
            built_artifact = poll_artifacts(worker_id=config.worker_id).processed > 0
            # A busy queue is polled again right away.
            next_artifact_poll = (
                now if built_artifact else now + config.artifact_poll_interval_seconds
            )

        ran_job = run_one_job(config=config)
        if not (ran_job or built_artifact):
            time.sleep(config.poll_interval_seconds)


def run_one_job(*, config: WorkerConfig) -> bool:
    """Claim and run at most one due job. Returns False when nothing was due."""
    with session_scope() as session:
        job = _claim_next_job(session=session, worker_id=config.worker_id)
        if job is None:
            session.commit()
            return False

        with worker_span("bg_job", job_type=job.type.value, job_id=str(job.id)):
            outcome = _execute(session=session, job=job, config=config)
        session.commit()
    observe_job(job_type=job.type.value, outcome=outcome)
    return True


def _execute(*, session: Session, job: ClaimedJob, config: WorkerConfig) -> str:
    try:
        # Handler writes roll back alone; the job row update below still lands.
        with session.begin_nested():
            handle_job(session=session, job_id=job.id, job_type=job.type, payload=job.payload)
    except PermanentJobError as e:
        logger.warning("job %s (%s) failed permanently: %s", job.id, job.type.value, e)
        _record_failure(session=session, config=config, job_id=job.id, error=str(e), permanent=True)
        return "failed"
    except Exception as e:
        logger.warning("job %s (%s) failed: %s", job.id, job.type.value, e)
        status = _record_failure(
            session=session, config=config, job_id=job.id, error=str(e), permanent=False
        )
        return "failed" if status == "failed" else "error"

    session.execute(_SUCCEED_SQL, {"id": job.id})
    return "succeeded"


def _claim_next_job(*, session: Session, worker_id: str) -> ClaimedJob | None:
    row = session.execute(_CLAIM_SQL, {"worker_id": worker_id}).mappings().first()
    if row is None:
        return None
    return ClaimedJob(id=row["id"], type=JobType(row["type"]), payload=row["payload"] or {})


def _record_failure(
    *,
    session: Session,
    config: WorkerConfig,
    job_id: UUID,
    error: str,
    permanent: bool,
) -> str | None:
    return session.execute(
        _FAIL_SQL,
        {
            "id": job_id,
            "error": error[:2000],
            "permanent": permanent,
            "max_backoff": config.max_backoff_seconds,
        },
    ).scalar_one_or_none()
