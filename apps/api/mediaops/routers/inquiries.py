from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from mediaops.core.deps import OrgContext, require_csrf_header, require_member
from mediaops.db.session import get_session
from mediaops.models.enums import InquiryStatus
from mediaops.schemas.inquiries import InquiryCreateRequest, InquiryOut, InquiryUpdateRequest
from mediaops.schemas.projects import ProjectOut
from mediaops.services.inquiries import (
    convert_inquiry,
    create_inquiry,
    get_inquiry,
    list_inquiries,
    update_inquiry,
)

router = APIRouter(
    prefix="/inquiries", tags=["inquiries"], dependencies=[Depends(require_csrf_header)]
)
# Contact forms post here from outside the app, without a session or CSRF cookie.
public_router = APIRouter(prefix="/public", tags=["inquiries"])


@public_router.post(
    "/organizations/{organization_id}/inquiries",
    response_model=InquiryOut,
    status_code=status.HTTP_201_CREATED,
)
def inquiries_public_create(
    organization_id: UUID,
    payload: InquiryCreateRequest,
    session: Session = Depends(get_session),
) -> InquiryOut:
    inquiry = create_inquiry(
        session=session, organization_id=organization_id, data=payload.model_dump()
    )
    session.commit()
    return inquiry


@router.get("", response_model=list[InquiryOut])
def inquiries_list(
    status_filter: InquiryStatus | None = Query(default=None, alias="status"),
    org: OrgContext = Depends(require_member),
    session: Session = Depends(get_session),
) -> list[InquiryOut]:
    return list_inquiries(session=session, ctx=org, status_filter=status_filter)


@router.get("/{inquiry_id}", response_model=InquiryOut)
def inquiries_get(
    inquiry_id: UUID,
    org: OrgContext = Depends(require_member),
    session: Session = Depends(get_session),
) -> InquiryOut:
    return get_inquiry(session=session, ctx=org, inquiry_id=inquiry_id)


@router.patch("/{inquiry_id}", response_model=InquiryOut)
def inquiries_update(
    inquiry_id: UUID,
    payload: InquiryUpdateRequest,
    org: OrgContext = Depends(require_member),
    session: Session = Depends(get_session),
) -> InquiryOut:
    inquiry = update_inquiry(
        session=session,
        ctx=org,
        inquiry_id=inquiry_id,
        updates=payload.model_dump(exclude_unset=True),
    )
    session.commit()
    return inquiry


@router.post(
    "/{inquiry_id}/convert", response_model=ProjectOut, status_code=status.HTTP_201_CREATED
)
def inquiries_convert(
    inquiry_id: UUID,
    org: OrgContext = Depends(require_member),
    session: Session = Depends(get_session),
) -> ProjectOut:
    project = convert_inquiry(session=session, ctx=org, inquiry_id=inquiry_id)
    session.commit()
    return project
