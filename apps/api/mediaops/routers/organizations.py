from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from mediaops.core.deps import OrgContext, SessionAuth, require_csrf_header, require_member, require_session
from mediaops.db.session import get_session
from mediaops.schemas.organizations import (
    AuditEventOut,
    InvitationOut,
    InviteAcceptRequest,
    InviteCreateRequest,
    MemberOut,
    MemberRoleUpdateRequest,
    MyOrganizationOut,
    OrganizationCreateRequest,
    OrganizationDetailOut,
    OrganizationSettingsUpdateRequest,
)
from mediaops.services.audit import list_events
from mediaops.services.organizations import (
    accept_invite,
    change_member_role,
    create_invite,
    create_organization,
    list_members,
    list_user_organizations,
    remove_member,
    update_organization_settings,
)

router = APIRouter(
    prefix="/organizations", tags=["organizations"], dependencies=[Depends(require_csrf_header)]
)


@router.post("", response_model=OrganizationDetailOut, status_code=status.HTTP_201_CREATED)
def organizations_create(
    payload: OrganizationCreateRequest,
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> OrganizationDetailOut:
    _, user = auth
    org = create_organization(session=session, user=user, name=payload.name, org_type=payload.type)
    session.commit()
    return org


@router.get("", response_model=list[MyOrganizationOut])
def organizations_list(
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> list[MyOrganizationOut]:
    _, user = auth
    return [
        MyOrganizationOut(
            organization=m.organization,
            role=m.role,
            effective_role=m.effective_role.value,
        )
        for m in list_user_organizations(session=session, user_id=user.id)
    ]


@router.get("/current", response_model=OrganizationDetailOut)
def organizations_current(org: OrgContext = Depends(require_member)) -> OrganizationDetailOut:
    return org.organization


@router.patch("/current", response_model=OrganizationDetailOut)
def organizations_update_current(
    payload: OrganizationSettingsUpdateRequest,
    org: OrgContext = Depends(require_member),
    session: Session = Depends(get_session),
) -> OrganizationDetailOut:
    updated = update_organization_settings(
        session=session, ctx=org, updates=payload.model_dump(exclude_unset=True)
    )
    session.commit()
    return updated


@router.get("/current/members", response_model=list[MemberOut])
def organizations_members(
    org: OrgContext = Depends(require_member), session: Session = Depends(get_session)
) -> list[MemberOut]:
    return [
        MemberOut(user=m.user, role=m.membership.role, joined_at=m.membership.created_at)
        for m in list_members(session=session, ctx=org)
    ]


@router.patch("/current/members/{user_id}", response_model=list[MemberOut])
def organizations_member_role(
    user_id: UUID,
    payload: MemberRoleUpdateRequest,
    org: OrgContext = Depends(require_member),
    session: Session = Depends(get_session),
) -> list[MemberOut]:
    change_member_role(session=session, ctx=org, target_user_id=user_id, new_role=payload.role)
    session.commit()
    # An ownership transfer changes two rows; return the whole roster.
    return [
        MemberOut(user=m.user, role=m.membership.role, joined_at=m.membership.created_at)
        for m in list_members(session=session, ctx=org)
    ]


@router.delete("/current/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def organizations_member_remove(
    user_id: UUID,
    org: OrgContext = Depends(require_member),
    session: Session = Depends(get_session),
) -> Response:
    remove_member(session=session, ctx=org, target_user_id=user_id)
    session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/current/invites", response_model=InvitationOut, status_code=status.HTTP_201_CREATED
)
def organizations_invite(
    payload: InviteCreateRequest,
    org: OrgContext = Depends(require_member),
    session: Session = Depends(get_session),
) -> InvitationOut:
    invite = create_invite(session=session, ctx=org, email=payload.email, role=payload.role)
    session.commit()
    return invite


@router.post("/invites/accept", response_model=InvitationOut)
def organizations_invite_accept(
    payload: InviteAcceptRequest,
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> InvitationOut:
    _, user = auth
    invite = accept_invite(session=session, user=user, token=payload.token)
    session.commit()
    return invite


@router.get("/current/audit-log", response_model=list[AuditEventOut])
def organizations_audit_log(
    project_id: UUID | None = None,
    event_type: str | None = Query(default=None, max_length=100),
    before: datetime | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    org: OrgContext = Depends(require_member),
    session: Session = Depends(get_session),
) -> list[AuditEventOut]:
    return list_events(
        session=session,
        ctx=org,
        project_id=project_id,
        event_type_prefix=event_type,
        before=before,
        limit=limit,
    )
