from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mediaops.core.deps import OrgContext
from mediaops.core.security import new_delivery_token
from mediaops.models.enums import AccountType, EffectiveRole, JobType, ProjectStatus
from mediaops.models.identity import OrganizationCustomer, User
from mediaops.models.projects import CalendarEvent, Project
from mediaops.services import authorization as authz
from mediaops.services.audit import log_event
from mediaops.services.availability import get_user_availability, is_user_available_at
from mediaops.services.customers import get_customer_in_org
from mediaops.services.notifications import notify_assignment, notify_delivery
from mediaops.worker.queue import enqueue_job

logger = logging.getLogger("mediaops.api")

DETAIL_FIELDS = (
    "address_line1",
    "address_line2",
    "city",
    "region",
    "postal_code",
    "notes",
    "scheduled_time",
)

# Forward moves an assigned technician or editor may make on their own.
OWN_WORK_TRANSITIONS = frozenset(
    {
        (ProjectStatus.BOOKED, ProjectStatus.SHOOTING),
        (ProjectStatus.SHOOTING, ProjectStatus.EDITING),
    }
)


@dataclass(frozen=True)
class AssignmentResult:
    project: Project
    changed: bool
    warning: str | None = None


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def get_project(*, session: Session, project_id: UUID, for_update: bool = False) -> Project:
    project = session.get(Project, project_id, with_for_update=for_update or None)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


def customer_user_id(session: Session, project: Project) -> UUID | None:
    if project.customer_id is None:
        return None
    customer = session.get(OrganizationCustomer, project.customer_id)
    return customer.user_id if customer is not None else None


def get_project_for_viewer(*, session: Session, ctx: OrgContext, project_id: UUID) -> Project:
    """Load a project the caller may see: org viewers, or the agent linked as its customer."""
    project = get_project(session=session, project_id=project_id)
    if authz.can_view_project(ctx, project):
        return project
    if customer_user_id(session, project) == ctx.user.id:
        return project
    raise _forbidden("Not allowed to view this project")


def get_project_for_manager(
    *, session: Session, ctx: OrgContext, project_id: UUID, for_update: bool = True
) -> Project:
    project = get_project(session=session, project_id=project_id, for_update=for_update)
    if not authz.can_manage_project(ctx, ctx.user, project):
        raise _forbidden("Not allowed to manage this project")
    return project


# Side effects


def _enqueue_calendar_sync(session: Session, project: Project) -> None:
    if project.technician_id is None or project.scheduled_time is None:
        return
    enqueue_job(
        session=session,
        job_type=JobType.calendar_sync,
        organization_id=project.organization_id,
        payload={"project_id": str(project.id)},
        dedupe_key=None,
    )


def _detach_calendar_event(session: Session, project: Project) -> bool:
    event = (
        session.execute(
            select(CalendarEvent).where(CalendarEvent.project_id == project.id).with_for_update()
        )
        .scalars()
        .first()
    )
    if event is None:
        return False
    enqueue_job(
        session=session,
        job_type=JobType.calendar_remove,
        organization_id=project.organization_id,
        payload={
            "project_id": str(project.id),
            "grant_id": event.grant_id,
            "external_event_id": event.external_event_id,
        },
        dedupe_key=None,
    )
    session.delete(event)
    session.flush()
    return True


def _enqueue_delivery_email(session: Session, project: Project) -> None:
    if project.customer_id is None:
        return
    customer = session.get(OrganizationCustomer, project.customer_id)
    if customer is None or not customer.email:
        return
    enqueue_job(
        session=session,
        job_type=JobType.delivery_email,
        organization_id=project.organization_id,
        payload={
            "project_id": str(project.id),
            "to_email": customer.email,
            "to_name": customer.name,
        },
        dedupe_key=None,
    )


def _flush_or_conflict(session: Session, *, detail: str) -> None:
    try:
        with session.begin_nested():
            session.flush()
    except IntegrityError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail) from e


# CRUD


def create_project(*, session: Session, ctx: OrgContext, data: dict) -> Project:
    if not authz.can_create_project(ctx):
        raise _forbidden("Not allowed to create projects")

    customer_id = data.get("customer_id")
    if customer_id is not None:
        get_customer_in_org(session=session, ctx=ctx, customer_id=customer_id)

    project = Project(
        organization_id=ctx.organization_id,
        customer_id=customer_id,
        status=ProjectStatus.BOOKED,
        **{f: data.get(f) for f in DETAIL_FIELDS},
    )
    if ctx.effective_role == EffectiveRole.PROJECT_MANAGER:
        # Otherwise the creator could not manage their own project.
        project.project_manager_id = ctx.user.id
    session.add(project)
    session.flush()

    log_event(
        session=session,
        organization_id=ctx.organization_id,
        actor_user_id=ctx.user.id,
        event_type="project.created",
        event_data={},
        project_id=project.id,
    )

    linked_user_id = customer_user_id(session, project)
    if linked_user_id is not None:
        notify_assignment(session=session, user_id=linked_user_id, project=project, role="CUSTOMER")
    return project


def list_projects_for_user(*, session: Session, ctx: OrgContext) -> list[Project]:
    user = ctx.user
    role = ctx.effective_role
    order = (Project.scheduled_time.desc().nulls_last(), Project.created_at.desc())
    linked_to_user = select(OrganizationCustomer.id).where(OrganizationCustomer.user_id == user.id)

    if (
        user.account_type == AccountType.AGENT
        and ctx.is_personal_org
        and role == EffectiveRole.PERSONAL_OWNER
    ):
        # Across every org that booked this agent as its customer.
        stmt = select(Project).where(Project.customer_id.in_(linked_to_user))
        return list(session.execute(stmt.order_by(*order)).scalars())

    if role == EffectiveRole.NONE:
        if user.account_type != AccountType.AGENT:
            raise _forbidden("Not a member of this organization")
        stmt = select(Project).where(
            Project.organization_id == ctx.organization_id,
            Project.customer_id.in_(
                linked_to_user.where(OrganizationCustomer.organization_id == ctx.organization_id)
            ),
        )
        return list(session.execute(stmt.order_by(*order)).scalars())

    in_org = Project.organization_id == ctx.organization_id
    match role:
        case EffectiveRole.PERSONAL_OWNER | EffectiveRole.OWNER | EffectiveRole.ADMIN:
            stmt = select(Project).where(in_org)
        case EffectiveRole.TECHNICIAN:
            stmt = select(Project).where(in_org, Project.technician_id == user.id)
        case EffectiveRole.EDITOR:
            stmt = select(Project).where(in_org, Project.editor_id == user.id)
        case EffectiveRole.PROJECT_MANAGER:
            stmt = select(Project).where(
                in_org,
                or_(
                    Project.project_manager_id == user.id,
                    Project.technician_id == user.id,
                    Project.editor_id == user.id,
                ),
            )
        case EffectiveRole.AGENT:
            stmt = select(Project).where(in_org, Project.customer_id.in_(linked_to_user))
    return list(session.execute(stmt.order_by(*order)).scalars())


def update_project(
    *, session: Session, ctx: OrgContext, project_id: UUID, updates: dict
) -> Project:
    project = get_project_for_manager(session=session, ctx=ctx, project_id=project_id)

    old_time = project.scheduled_time
    for field in DETAIL_FIELDS:
        if field in updates:
            setattr(project, field, updates[field])
    session.add(project)
    session.flush()

    if "scheduled_time" in updates and updates["scheduled_time"] != old_time:
        if project.scheduled_time is None:
            _detach_calendar_event(session, project)
        else:
            _enqueue_calendar_sync(session, project)

    log_event(
        session=session,
        organization_id=project.organization_id,
        actor_user_id=ctx.user.id,
        event_type="project.updated",
        event_data={"fields": sorted(f for f in updates if f in DETAIL_FIELDS)},
        project_id=project.id,
    )
    return project


def delete_project(*, session: Session, ctx: OrgContext, project_id: UUID) -> None:
    project = get_project(session=session, project_id=project_id, for_update=True)
    if not authz.can_delete_project(ctx, project):
        raise _forbidden("Only owners and admins can delete projects")

    _detach_calendar_event(session, project)
    log_event(
        session=session,
        organization_id=project.organization_id,
        actor_user_id=ctx.user.id,
        event_type="project.deleted",
        event_data={"status": project.status.value},
        project_id=project.id,
    )
    session.delete(project)
    session.flush()


# Assignment


def _require_user(session: Session, user_id: UUID) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _log_assignment(
    session: Session, *, ctx: OrgContext, project: Project, role: str, old: UUID | None
) -> None:
    new = {
        "TECHNICIAN": project.technician_id,
        "EDITOR": project.editor_id,
        "PROJECT_MANAGER": project.project_manager_id,
        "CUSTOMER": project.customer_id,
    }[role]
    log_event(
        session=session,
        organization_id=project.organization_id,
        actor_user_id=ctx.user.id,
        event_type="project.assigned",
        event_data={
            "role": role,
            "from": str(old) if old else None,
            "to": str(new) if new else None,
        },
        project_id=project.id,
    )


def assign_technician(
    *, session: Session, ctx: OrgContext, project_id: UUID, technician_id: UUID | None
) -> AssignmentResult:
    project = get_project_for_manager(session=session, ctx=ctx, project_id=project_id)

    warning: str | None = None
    if technician_id is not None:
        _require_user(session, technician_id)
        if project.scheduled_time is not None:
            check = is_user_available_at(
                session=session, user_id=technician_id, when=project.scheduled_time
            )
            if not check.available:
                settings = get_user_availability(session=session, user_id=technician_id)
                if settings.auto_decline_bookings:
                    raise HTTPException(
                        status_code=status.HTTP_409_CONFLICT,
                        detail=f"Technician is unavailable and auto-declines bookings: {check.reason}",
                    )
                warning = f"Technician may be unavailable: {check.reason}"

    old = project.technician_id
    if old == technician_id:
        return AssignmentResult(project=project, changed=False, warning=warning)

    project.technician_id = technician_id
    session.add(project)
    session.flush()

    # The event lives on the previous technician's calendar.
    _detach_calendar_event(session, project)
    if technician_id is not None:
        _enqueue_calendar_sync(session, project)
        notify_assignment(session=session, user_id=technician_id, project=project, role="TECHNICIAN")

    _log_assignment(session, ctx=ctx, project=project, role="TECHNICIAN", old=old)
    if warning:
        logger.info("project %s assigned despite availability warning: %s", project.id, warning)
    return AssignmentResult(project=project, changed=True, warning=warning)


def assign_editor(
    *, session: Session, ctx: OrgContext, project_id: UUID, editor_id: UUID | None
) -> AssignmentResult:
    project = get_project_for_manager(session=session, ctx=ctx, project_id=project_id)
    if editor_id is not None:
        _require_user(session, editor_id)

    old = project.editor_id
    if old == editor_id:
        return AssignmentResult(project=project, changed=False)

    project.editor_id = editor_id
    session.add(project)
    session.flush()
    if editor_id is not None:
        notify_assignment(session=session, user_id=editor_id, project=project, role="EDITOR")
    _log_assignment(session, ctx=ctx, project=project, role="EDITOR", old=old)
    return AssignmentResult(project=project, changed=True)


def assign_project_manager(
    *, session: Session, ctx: OrgContext, project_id: UUID, project_manager_id: UUID | None
) -> AssignmentResult:
    project = get_project_for_manager(session=session, ctx=ctx, project_id=project_id)
    if project_manager_id is not None:
        _require_user(session, project_manager_id)

    old = project.project_manager_id
    if old == project_manager_id:
        return AssignmentResult(project=project, changed=False)

    project.project_manager_id = project_manager_id
    session.add(project)
    session.flush()
    if project_manager_id is not None:
        notify_assignment(
            session=session, user_id=project_manager_id, project=project, role="PROJECT_MANAGER"
        )
    _log_assignment(session, ctx=ctx, project=project, role="PROJECT_MANAGER", old=old)
    return AssignmentResult(project=project, changed=True)


def assign_customer(
    *, session: Session, ctx: OrgContext, project_id: UUID, customer_id: UUID | None
) -> AssignmentResult:
    project = get_project(session=session, project_id=project_id, for_update=True)
    if not authz.can_change_project_customer(ctx, project):
        raise _forbidden("Only owners and admins can change a project's customer")
    customer = (
        get_customer_in_org(session=session, ctx=ctx, customer_id=customer_id)
        if customer_id is not None
        else None
    )

    old = project.customer_id
    if old == customer_id:
        return AssignmentResult(project=project, changed=False)

    project.customer_id = customer_id
    session.add(project)
    session.flush()
    # The linked agent is told, not the person doing the assigning.
    if customer is not None and customer.user_id is not None:
        notify_assignment(session=session, user_id=customer.user_id, project=project, role="CUSTOMER")
    _log_assignment(session, ctx=ctx, project=project, role="CUSTOMER", old=old)
    return AssignmentResult(project=project, changed=True)


# Status and delivery


def _enable_delivery(session: Session, project: Project) -> bool:
    """Stamp delivery and mint a token if missing. Returns True if delivery was off before."""
    newly_enabled = project.delivery_enabled_at is None
    if not project.delivery_token:
        project.delivery_token = new_delivery_token()
    if newly_enabled:
        project.delivery_enabled_at = datetime.now(UTC)
    session.add(project)
    session.flush()

    if newly_enabled:
        notify_delivery(session=session, project=project, delivery_token=project.delivery_token)
        _enqueue_delivery_email(session, project)
    return newly_enabled


def update_status(
    *, session: Session, ctx: OrgContext, project_id: UUID, new_status: ProjectStatus
) -> Project:
    project = get_project(session=session, project_id=project_id, for_update=True)
    current = project.status

    if authz.can_manage_project(ctx, ctx.user, project):
        pass
    elif authz.can_update_own_work(ctx, ctx.user, project):
        if (current, new_status) not in OWN_WORK_TRANSITIONS:
            raise _forbidden(f"Cannot move project from {current.value} to {new_status.value}")
    else:
        raise _forbidden("Not allowed to update this project's status")

    if current == new_status:
        return project

    project.status = new_status
    session.add(project)
    session.flush()

    if new_status == ProjectStatus.DELIVERED:
        _enable_delivery(session, project)
    elif new_status == ProjectStatus.CANCELLED:
        _detach_calendar_event(session, project)

    log_event(
        session=session,
        organization_id=project.organization_id,
        actor_user_id=ctx.user.id,
        event_type="project.status_changed",
        event_data={"from": current.value, "to": new_status.value},
        project_id=project.id,
    )
    return project


def enable_delivery(*, session: Session, ctx: OrgContext, project_id: UUID) -> Project:
    project = get_project_for_manager(session=session, ctx=ctx, project_id=project_id)
    if _enable_delivery(session, project):
        log_event(
            session=session,
            organization_id=project.organization_id,
            actor_user_id=ctx.user.id,
            event_type="project.delivery_enabled",
            event_data={},
            project_id=project.id,
        )
    return project


def disable_delivery(*, session: Session, ctx: OrgContext, project_id: UUID) -> Project:
    project = get_project_for_manager(session=session, ctx=ctx, project_id=project_id)
    if project.delivery_enabled_at is None:
        return project
    # The token is kept so re-enabling restores the same link.
    project.delivery_enabled_at = None
    session.add(project)
    session.flush()
    log_event(
        session=session,
        organization_id=project.organization_id,
        actor_user_id=ctx.user.id,
        event_type="project.delivery_disabled",
        event_data={},
        project_id=project.id,
    )
    return project


def regenerate_delivery_token(*, session: Session, ctx: OrgContext, project_id: UUID) -> Project:
    project = get_project_for_manager(session=session, ctx=ctx, project_id=project_id)
    project.delivery_token = new_delivery_token()
    session.add(project)
    _flush_or_conflict(session, detail="Delivery token collision; retry")
    log_event(
        session=session,
        organization_id=project.organization_id,
        actor_user_id=ctx.user.id,
        event_type="project.delivery_token_regenerated",
        event_data={},
        project_id=project.id,
    )
    return project
