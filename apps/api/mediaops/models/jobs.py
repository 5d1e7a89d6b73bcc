from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Enum, ForeignKey, Index, Integer, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from mediaops.models.base import Base, created_ts, updated_ts, uuid_pk
from mediaops.models.enums import JobStatus, JobType


class BgJob(Base):
    """A queued side effect (email, calendar call, blob cleanup).

    Rows are written by `worker.queue.enqueue_job` inside the request
    transaction and consumed by `worker.runner`.
    """

    __tablename__ = "bg_jobs"
    __table_args__ = (
        Index("bg_jobs_queued_run_at_idx", "run_at", "created_at", postgresql_where=text("status = 'queued'")),
        Index(
            "bg_jobs_dedupe_uq",
            "organization_id",
            "type",
            "dedupe_key",
            unique=True,
            postgresql_where=text("dedupe_key IS NOT NULL"),
        ),
    )

    id: Mapped[uuid_pk]
    organization_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE")
    )
    type: Mapped[JobType] = mapped_column(Enum(JobType, name="job_type", create_type=False))
    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, name="job_status", create_type=False), server_default=text("'queued'")
    )

    run_at: Mapped[datetime] = mapped_column(server_default=text("now()"))
    attempts: Mapped[int] = mapped_column(Integer, server_default=text("0"))
    max_attempts: Mapped[int] = mapped_column(Integer, server_default=text("5"))
    locked_at: Mapped[datetime | None]
    locked_by: Mapped[str | None] = mapped_column(Text)
    last_error: Mapped[str | None] = mapped_column(Text)

    dedupe_key: Mapped[str | None] = mapped_column(Text)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONB, server_default=text("'{}'::jsonb"))

    created_at: Mapped[created_ts]
    updated_at: Mapped[updated_ts]
