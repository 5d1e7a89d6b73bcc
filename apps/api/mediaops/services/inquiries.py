from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from mediaops.core.deps import OrgContext
from mediaops.models.enums import InquiryStatus
from mediaops.models.identity import Organization
from mediaops.models.projects import Inquiry, Project
from mediaops.services import authorization as authz
from mediaops.services.audit import log_event
from mediaops.services.projects import create_project

_EDITABLE_FIELDS = ("name", "email", "phone", "address", "message", "status")


def create_inquiry(*, session: Session, organization_id: UUID, data: dict) -> Inquiry:
    if session.get(Organization, organization_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")
    inquiry = Inquiry(
        organization_id=organization_id,
        name=data["name"].strip(),
        email=data["email"].strip().lower(),
        phone=data.get("phone"),
        address=data.get("address"),
        message=data.get("message"),
    )
    session.add(inquiry)
    session.flush()
    return inquiry


def _ensure_can_manage(ctx: OrgContext) -> None:
    if not authz.can_manage_inquiries(ctx):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to view inquiries"
        )


def list_inquiries(
    *, session: Session, ctx: OrgContext, status_filter: InquiryStatus | None = None
) -> list[Inquiry]:
    _ensure_can_manage(ctx)
    stmt = select(Inquiry).where(Inquiry.organization_id == ctx.organization_id)
    if status_filter is not None:
        stmt = stmt.where(Inquiry.status == status_filter)
    stmt = stmt.order_by(Inquiry.created_at.desc(), Inquiry.id.desc())
    return list(session.execute(stmt).scalars())


def get_inquiry(
    *, session: Session, ctx: OrgContext, inquiry_id: UUID, for_update: bool = False
) -> Inquiry:
    _ensure_can_manage(ctx)
    inquiry = session.get(Inquiry, inquiry_id, with_for_update=for_update or None)
    if inquiry is None or inquiry.organization_id != ctx.organization_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Inquiry not found")
    return inquiry


def update_inquiry(
    *, session: Session, ctx: OrgContext, inquiry_id: UUID, updates: dict
) -> Inquiry:
    inquiry = get_inquiry(session=session, ctx=ctx, inquiry_id=inquiry_id)
    if updates.get("status") == InquiryStatus.CONVERTED_TO_PROJECT:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Use the convert endpoint to create a project",
        )
    for field in _EDITABLE_FIELDS:
        if field in updates and updates[field] is not None:
            setattr(inquiry, field, updates[field])
    session.add(inquiry)
    session.flush()
    return inquiry


def convert_inquiry(*, session: Session, ctx: OrgContext, inquiry_id: UUID) -> Project:
    if not authz.can_convert_inquiry(ctx):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to convert inquiries to projects",
        )
    # Concurrent converts queue on the row lock; the loser sees CONVERTED_TO_PROJECT.
    inquiry = get_inquiry(session=session, ctx=ctx, inquiry_id=inquiry_id, for_update=True)
    if inquiry.status == InquiryStatus.CONVERTED_TO_PROJECT:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Inquiry already converted")

    project = create_project(
        session=session,
        ctx=ctx,
        data={"address_line1": inquiry.address, "notes": inquiry.message},
    )
    inquiry.status = InquiryStatus.CONVERTED_TO_PROJECT
    inquiry.converted_project_id = project.id
    session.add(inquiry)
    session.flush()

    log_event(
        session=session,
        organization_id=ctx.organization_id,
        actor_user_id=ctx.user.id,
        event_type="inquiry.converted",
        event_data={"inquiry_id": str(inquiry.id)},
        project_id=project.id,
    )
    return project
