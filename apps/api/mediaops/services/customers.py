from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mediaops.core.deps import OrgContext
from mediaops.models.identity import OrganizationCustomer, User
from mediaops.models.projects import Project
from mediaops.services import authorization as authz
from mediaops.services.audit import log_event

_EDITABLE_FIELDS = ("name", "email", "phone", "notes", "user_id")


@dataclass(frozen=True)
class CustomerSummary:
    customer: OrganizationCustomer
    total_jobs: int
    last_job_at: datetime | None


def _ensure_can_manage(ctx: OrgContext) -> None:
    if not authz.can_manage_customers(ctx):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to manage customers"
        )


def get_customer_in_org(
    *, session: Session, ctx: OrgContext, customer_id: UUID
) -> OrganizationCustomer:
    customer = session.get(OrganizationCustomer, customer_id)
    if customer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    if customer.organization_id != ctx.organization_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Customer belongs to a different organization",
        )
    return customer


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_customers(
    *, session: Session, ctx: OrgContext, search: str | None = None
) -> list[CustomerSummary]:
    _ensure_can_manage(ctx)

    stmt = (
        select(
            OrganizationCustomer,
            func.count(Project.id),
            func.max(Project.scheduled_time),
        )
        .outerjoin(Project, Project.customer_id == OrganizationCustomer.id)
        .where(OrganizationCustomer.organization_id == ctx.organization_id)
        .group_by(OrganizationCustomer.id)
        .order_by(OrganizationCustomer.created_at.desc(), OrganizationCustomer.id.desc())
    )
    if search and search.strip():
        pattern = f"%{_escape_like(search.strip())}%"
        stmt = stmt.where(
            or_(
                OrganizationCustomer.name.ilike(pattern, escape="\\"),
                OrganizationCustomer.email.ilike(pattern, escape="\\"),
                OrganizationCustomer.phone.ilike(pattern, escape="\\"),
            )
        )

    return [
        CustomerSummary(customer=c, total_jobs=int(total), last_job_at=last)
        for c, total, last in session.execute(stmt).all()
    ]


def _validate_linked_user(session: Session, user_id: UUID | None) -> None:
    if user_id is not None and session.get(User, user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Linked user not found")


def _flush_or_conflict(session: Session) -> None:
    try:
        with session.begin_nested():
            session.flush()
    except IntegrityError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User is already a customer of this organization",
        ) from e


def create_customer(*, session: Session, ctx: OrgContext, data: dict) -> OrganizationCustomer:
    _ensure_can_manage(ctx)
    name = (data.get("name") or "").strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Customer name is required"
        )
    _validate_linked_user(session, data.get("user_id"))

    customer = OrganizationCustomer(
        organization_id=ctx.organization_id,
        name=name,
        email=(data.get("email") or "").strip().lower() or None,
        phone=data.get("phone"),
        notes=data.get("notes"),
        user_id=data.get("user_id"),
    )
    session.add(customer)
    _flush_or_conflict(session)

    log_event(
        session=session,
        organization_id=ctx.organization_id,
        actor_user_id=ctx.user.id,
        event_type="customer.created",
        event_data={"customer_id": str(customer.id)},
    )
    return customer


def update_customer(
    *, session: Session, ctx: OrgContext, customer_id: UUID, updates: dict
) -> OrganizationCustomer:
    _ensure_can_manage(ctx)
    customer = get_customer_in_org(session=session, ctx=ctx, customer_id=customer_id)

    if "user_id" in updates:
        _validate_linked_user(session, updates["user_id"])
    for field in _EDITABLE_FIELDS:
        if field not in updates:
            continue
        value = updates[field]
        if field == "name":
            value = (value or "").strip()
            if not value:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="Customer name is required",
                )
        elif field == "email" and value is not None:
            value = value.strip().lower() or None
        setattr(customer, field, value)

    session.add(customer)
    _flush_or_conflict(session)
    return customer


def delete_customer(*, session: Session, ctx: OrgContext, customer_id: UUID) -> None:
    _ensure_can_manage(ctx)
    customer = get_customer_in_org(session=session, ctx=ctx, customer_id=customer_id)
    # projects.customer_id is ON DELETE SET NULL.
    session.delete(customer)
    session.flush()
    log_event(
        session=session,
        organization_id=ctx.organization_id,
        actor_user_id=ctx.user.id,
        event_type="customer.deleted",
        event_data={"customer_id": str(customer_id)},
    )
