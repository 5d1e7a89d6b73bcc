from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from mediaops.models.base import Base, created_ts, updated_ts, uuid_pk
from mediaops.models.enums import DownloadArtifactStatus, DownloadArtifactType


class DownloadArtifact(Base):
    __tablename__ = "download_artifacts"

    id: Mapped[uuid_pk]
    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    requested_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    type: Mapped[DownloadArtifactType] = mapped_column(
        Enum(DownloadArtifactType, name="download_artifact_type", create_type=False),
        nullable=False,
        server_default=text("'ALL'"),
    )
    status: Mapped[DownloadArtifactStatus] = mapped_column(
        Enum(DownloadArtifactStatus, name="download_artifact_status", create_type=False),
        nullable=False,
        server_default=text("'PENDING'"),
    )

    # Null while unclaimed; the claiming worker's identity while GENERATING.
    worker_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    processing_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    storage_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    filename: Mapped[str | None] = mapped_column(Text, nullable=True)
    size_bytes: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    created_at: Mapped[created_ts]
    updated_at: Mapped[updated_ts]
