from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from mediaops.core.deps import OrgContext
from mediaops.models.audit import AuditEvent
from mediaops.services.authorization import can_manage_org_settings


def log_event(
    *,
    session: Session,
    organization_id: UUID,
    actor_user_id: UUID | None,
    event_type: str,
    event_data: dict[str, Any],
    project_id: UUID | None = None,
) -> AuditEvent:
    """Append an audit row in the caller's transaction; it commits or rolls back with the change."""
    event = AuditEvent(
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        project_id=project_id,
        event_type=event_type,
        event_data=event_data,
    )
    session.add(event)
    session.flush()
    return event


def list_events(
    *,
    session: Session,
    ctx: OrgContext,
    project_id: UUID | None = None,
    event_type_prefix: str | None = None,
    before: datetime | None = None,
    limit: int = 50,
) -> list[AuditEvent]:
    """Newest first. Page with `before` set to the last row's `created_at`."""
    if not can_manage_org_settings(ctx):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to view the audit log")

    stmt = select(AuditEvent).where(AuditEvent.organization_id == ctx.organization.id)
    if project_id is not None:
        stmt = stmt.where(AuditEvent.project_id == project_id)
    if event_type_prefix:
        # "project." matches every project lifecycle event.
        stmt = stmt.where(AuditEvent.event_type.startswith(event_type_prefix, autoescape=True))
    if before is not None:
        stmt = stmt.where(AuditEvent.created_at < before)
    stmt = stmt.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(limit)
    return list(session.execute(stmt).scalars())
