from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from mediaops.db.session import best_effort_savepoint
from mediaops.models.enums import NotificationType, OrgRole, ProjectChatChannel
from mediaops.models.identity import Organization, OrganizationCustomer, OrganizationMember
from mediaops.models.notifications import Notification
from mediaops.models.projects import Project

_PREVIEW_CHARS = 100


def project_address(project: Project) -> str:
    parts = [project.address_line1, project.city, project.region, project.postal_code]
    return ", ".join(p for p in parts if p) or "Untitled project"


def _member_ids(session: Session, *, organization_id: UUID, roles: set[OrgRole]) -> set[UUID]:
    rows = session.execute(
        select(OrganizationMember.user_id).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.role.in_(roles),
        )
    ).scalars()
    return set(rows)


def _customer_user_id(session: Session, project: Project) -> UUID | None:
    if project.customer_id is None:
        return None
    customer = session.get(OrganizationCustomer, project.customer_id)
    return customer.user_id if customer is not None else None


def create_assignment_notification(
    *,
    session: Session,
    user_id: UUID,
    project: Project,
    role: str,
) -> Notification | None:
    """PROJECT_ASSIGNED for (user, project, role); a repeat call is a no-op."""
    existing = (
        session.execute(
            select(Notification.id).where(
                Notification.user_id == user_id,
                Notification.project_id == project.id,
                Notification.type == NotificationType.PROJECT_ASSIGNED,
                Notification.payload["role"].astext == role,
            )
        )
        .scalars()
        .first()
    )
    if existing is not None:
        return None

    notification = Notification(
        user_id=user_id,
        organization_id=project.organization_id,
        project_id=project.id,
        type=NotificationType.PROJECT_ASSIGNED,
        payload={"role": role, "address": project_address(project)},
    )
    session.add(notification)
    session.flush()
    return notification


def create_delivery_notification(
    *, session: Session, project: Project, delivery_token: str
) -> Notification | None:
    user_id = _customer_user_id(session, project)
    if user_id is None:
        return None

    existing = (
        session.execute(
            select(Notification.id).where(
                Notification.user_id == user_id,
                Notification.project_id == project.id,
                Notification.type == NotificationType.PROJECT_DELIVERED,
            )
        )
        .scalars()
        .first()
    )
    if existing is not None:
        return None

    org = session.get(Organization, project.organization_id)
    notification = Notification(
        user_id=user_id,
        organization_id=project.organization_id,
        project_id=project.id,
        type=NotificationType.PROJECT_DELIVERED,
        payload={
            "address": project_address(project),
            "organization_name": org.name if org is not None else None,
            "delivery_token": delivery_token,
        },
    )
    session.add(notification)
    session.flush()
    return notification


def create_message_notifications(
    *,
    session: Session,
    sender_id: UUID,
    project: Project,
    channel: ProjectChatChannel,
    message_id: UUID,
    preview: str,
) -> int:
    watchers = _member_ids(
        session,
        organization_id=project.organization_id,
        roles={OrgRole.OWNER, OrgRole.ADMIN},
    )
    if project.project_manager_id:
        watchers.add(project.project_manager_id)
    if channel == ProjectChatChannel.TEAM:
        for uid in (project.technician_id, project.editor_id):
            if uid:
                watchers.add(uid)
    else:
        customer_uid = _customer_user_id(session, project)
        if customer_uid:
            watchers.add(customer_uid)
    watchers.discard(sender_id)

    for user_id in sorted(watchers, key=str):
        session.add(
            Notification(
                user_id=user_id,
                organization_id=project.organization_id,
                project_id=project.id,
                type=NotificationType.NEW_MESSAGE,
                payload={
                    "message_id": str(message_id),
                    "channel": channel.value,
                    "preview": preview[:_PREVIEW_CHARS],
                },
            )
        )
    session.flush()
    return len(watchers)


def create_review_notifications(
    *,
    session: Session,
    project: Project,
    actor_id: UUID,
    actor_name: str,
    notification_type: NotificationType,
    comment: str | None = None,
) -> int:
    """Approval / changes-requested fan-out to the project's ops team."""
    watchers = _member_ids(
        session,
        organization_id=project.organization_id,
        roles={OrgRole.OWNER, OrgRole.ADMIN, OrgRole.PROJECT_MANAGER},
    )
    if project.project_manager_id:
        watchers.add(project.project_manager_id)
    if notification_type == NotificationType.CHANGES_REQUESTED:
        for uid in (project.technician_id, project.editor_id):
            if uid:
                watchers.add(uid)
    watchers.discard(actor_id)

    payload: dict = {"actor_name": actor_name, "address": project_address(project)}
    if comment:
        payload["comment"] = comment[:200]

    for user_id in sorted(watchers, key=str):
        session.add(
            Notification(
                user_id=user_id,
                organization_id=project.organization_id,
                project_id=project.id,
                type=notification_type,
                payload=payload,
            )
        )
    session.flush()
    return len(watchers)


def notify_assignment(*, session: Session, user_id: UUID, project: Project, role: str) -> None:
    with best_effort_savepoint(
        session, what="assignment notification", project_id=project.id, user_id=user_id
    ):
        create_assignment_notification(session=session, user_id=user_id, project=project, role=role)


def notify_delivery(*, session: Session, project: Project, delivery_token: str) -> None:
    with best_effort_savepoint(session, what="delivery notification", project_id=project.id):
        create_delivery_notification(session=session, project=project, delivery_token=delivery_token)


def list_notifications(
    *, session: Session, user_id: UUID, unread_only: bool, limit: int
) -> list[Notification]:
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.read_at.is_(None))
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    return list(session.execute(stmt).scalars())


def unread_count(*, session: Session, user_id: UUID) -> int:
    return int(
        session.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.read_at.is_(None))
        ).scalar_one()
    )


def mark_read(*, session: Session, user_id: UUID, notification_id: UUID) -> Notification:
    notification = session.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if notification.read_at is None:
        notification.read_at = datetime.now(UTC)
        session.add(notification)
        session.flush()
    return notification


def mark_all_read(*, session: Session, user_id: UUID) -> int:
    res = session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read_at.is_(None))
        .values(read_at=datetime.now(UTC))
    )
    return int(res.rowcount or 0)
