"""Public, token-addressed delivery pages.

A token only resolves while delivery is enabled on its project. Reading is
open to anyone holding the token; approving or requesting changes needs a
session belonging to the project's linked customer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from mediaops.db.session import best_effort_savepoint
from mediaops.models.artifacts import DownloadArtifact
from mediaops.models.enums import (
    ClientApprovalStatus,
    DownloadArtifactType,
    NotificationType,
    OrgRole,
    ProjectChatChannel,
)
from mediaops.models.identity import Organization, OrganizationCustomer, OrganizationMember, User
from mediaops.models.projects import Media, Project, ProjectMessage
from mediaops.services.artifacts import request_artifact
from mediaops.services.audit import log_event
from mediaops.services.media import list_project_media
from mediaops.services.messages import add_message, list_channel_messages
from mediaops.services.notifications import create_review_notifications

_COMMENT_ROLES = (OrgRole.OWNER, OrgRole.ADMIN, OrgRole.PROJECT_MANAGER)


@dataclass(frozen=True)
class DeliveryView:
    project: Project
    organization: Organization
    customer: OrganizationCustomer | None
    media: list[Media]
    comments: list[ProjectMessage]
    can_approve: bool


def get_delivery_project(*, session: Session, token: str, for_update: bool = False) -> Project:
    stmt = select(Project).where(
        Project.delivery_token == token, Project.delivery_enabled_at.is_not(None)
    )
    if for_update:
        stmt = stmt.with_for_update()
    project = session.execute(stmt).scalars().first()
    if project is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Delivery not found or invalid token"
        )
    return project


def _customer(session: Session, project: Project) -> OrganizationCustomer | None:
    if project.customer_id is None:
        return None
    return session.get(OrganizationCustomer, project.customer_id)


def get_delivery(*, session: Session, token: str, viewer: User | None) -> DeliveryView:
    project = get_delivery_project(session=session, token=token)
    org = session.get(Organization, project.organization_id)
    assert org is not None
    customer = _customer(session, project)
    return DeliveryView(
        project=project,
        organization=org,
        customer=customer,
        media=list_project_media(session=session, project_id=project.id),
        comments=list_channel_messages(
            session=session, project_id=project.id, channel=ProjectChatChannel.CUSTOMER
        ),
        can_approve=(
            viewer is not None
            and customer is not None
            and customer.user_id is not None
            and customer.user_id == viewer.id
        ),
    )


def list_comments(*, session: Session, token: str) -> list[ProjectMessage]:
    project = get_delivery_project(session=session, token=token)
    return list_channel_messages(
        session=session, project_id=project.id, channel=ProjectChatChannel.CUSTOMER
    )


def _require_linked_customer(session: Session, project: Project, user: User) -> OrganizationCustomer:
    customer = _customer(session, project)
    if customer is None or customer.user_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="This delivery has no linked customer"
        )
    if customer.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Only the customer can perform this action"
        )
    return customer


def add_comment(*, session: Session, token: str, user: User, content: str) -> ProjectMessage:
    project = get_delivery_project(session=session, token=token)
    customer = _customer(session, project)
    if customer is None or customer.user_id != user.id:
        staff = session.execute(
            select(OrganizationMember.id).where(
                OrganizationMember.organization_id == project.organization_id,
                OrganizationMember.user_id == user.id,
                OrganizationMember.role.in_(_COMMENT_ROLES),
            )
        ).first()
        if staff is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to comment on this delivery",
            )
    return add_message(
        session=session,
        project=project,
        user_id=user.id,
        channel=ProjectChatChannel.CUSTOMER,
        content=content,
    )


def approve_delivery(*, session: Session, token: str, user: User) -> Project:
    project = get_delivery_project(session=session, token=token, for_update=True)
    customer = _require_linked_customer(session, project, user)

    project.client_approval_status = ClientApprovalStatus.APPROVED
    project.client_approved_at = datetime.now(UTC)
    project.client_approved_by_id = user.id
    session.add(project)
    session.flush()

    with best_effort_savepoint(session, what="approval notifications", project_id=project.id):
        create_review_notifications(
            session=session,
            project=project,
            actor_id=user.id,
            actor_name=user.display_name or customer.name,
            notification_type=NotificationType.PROJECT_APPROVED,
        )
    log_event(
        session=session,
        organization_id=project.organization_id,
        actor_user_id=user.id,
        event_type="delivery.approved",
        event_data={},
        project_id=project.id,
    )
    return project


def request_changes(
    *, session: Session, token: str, user: User, feedback: str
) -> tuple[Project, ProjectMessage]:
    project = get_delivery_project(session=session, token=token, for_update=True)
    customer = _require_linked_customer(session, project, user)

    project.client_approval_status = ClientApprovalStatus.CHANGES_REQUESTED
    project.client_approved_at = None
    project.client_approved_by_id = None
    session.add(project)
    session.flush()

    message = add_message(
        session=session,
        project=project,
        user_id=user.id,
        channel=ProjectChatChannel.CUSTOMER,
        content=feedback,
    )
    with best_effort_savepoint(session, what="change request notifications", project_id=project.id):
        create_review_notifications(
            session=session,
            project=project,
            actor_id=user.id,
            actor_name=user.display_name or customer.name,
            notification_type=NotificationType.CHANGES_REQUESTED,
            comment=message.content,
        )
    log_event(
        session=session,
        organization_id=project.organization_id,
        actor_user_id=user.id,
        event_type="delivery.changes_requested",
        event_data={"message_id": str(message.id)},
        project_id=project.id,
    )
    return project, message


def request_delivery_artifact(
    *,
    session: Session,
    token: str,
    user: User | None,
    artifact_type: DownloadArtifactType,
) -> DownloadArtifact:
    project = get_delivery_project(session=session, token=token)
    return request_artifact(
        session=session,
        project=project,
        requested_by_id=user.id if user is not None else None,
        artifact_type=artifact_type,
    )


def get_delivery_artifact(*, session: Session, token: str, artifact_id: UUID) -> DownloadArtifact:
    project = get_delivery_project(session=session, token=token)
    artifact = session.get(DownloadArtifact, artifact_id)
    if artifact is None or artifact.project_id != project.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Artifact not found")
    return artifact
