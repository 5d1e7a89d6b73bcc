from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from mediaops.models.base import Base, created_ts, uuid_pk


class AuditEvent(Base):
    __tablename__ = "audit_events"
    __table_args__ = (
        Index("audit_events_org_created_idx", "organization_id", text("created_at DESC")),
        Index(
            "audit_events_project_idx",
            "project_id",
            text("created_at DESC"),
            postgresql_where=text("project_id IS NOT NULL"),
        ),
    )

    id: Mapped[uuid_pk]
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE")
    )
    actor_user_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    # Projects are hard-deleted; no foreign key so history outlives them.
    project_id: Mapped[UUID | None]

    # Dotted names: "project.status_changed", "auth.logout", ...
    event_type: Mapped[str] = mapped_column(Text)
    event_data: Mapped[dict[str, Any]] = mapped_column(JSONB, server_default=text("'{}'::jsonb"))
    created_at: Mapped[created_ts]
