from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mediaops.core.deps import OrgContext
from mediaops.core.security import new_invite_token
from mediaops.models.enums import EffectiveRole, OrgRole, OrgType
from mediaops.models.identity import Invitation, Organization, OrganizationMember, User
from mediaops.services import authorization as authz
from mediaops.services.audit import log_event
from mediaops.services.org_context import compute_effective_role, get_membership

_SLUG_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,62}[a-z0-9])?$")

SETTINGS_FIELDS = (
    "name",
    "legal_name",
    "slug",
    "logo_url",
    "website_url",
    "phone",
    "primary_email",
    "address_line1",
    "address_line2",
    "city",
    "region",
    "postal_code",
    "country_code",
    "timezone",
    "service_area",
)


@dataclass(frozen=True)
class MembershipView:
    organization: Organization
    role: OrgRole
    effective_role: EffectiveRole


@dataclass(frozen=True)
class MemberView:
    membership: OrganizationMember
    user: User


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def create_organization(
    *,
    session: Session,
    user: User,
    name: str,
    org_type: OrgType,
) -> Organization:
    if not authz.can_create_organization(org_type):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Personal organizations cannot be created",
        )
    name_clean = name.strip()
    if not name_clean:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Organization name is required"
        )

    org = Organization(name=name_clean, type=org_type)
    session.add(org)
    session.flush()
    session.add(OrganizationMember(organization_id=org.id, user_id=user.id, role=OrgRole.OWNER))
    session.flush()

    log_event(
        session=session,
        organization_id=org.id,
        actor_user_id=user.id,
        event_type="organization.created",
        event_data={"type": org_type.value},
    )
    return org


def list_user_organizations(*, session: Session, user_id: UUID) -> list[MembershipView]:
    rows = session.execute(
        select(OrganizationMember, Organization)
        .join(Organization, Organization.id == OrganizationMember.organization_id)
        .where(OrganizationMember.user_id == user_id)
        .order_by(Organization.type.asc(), Organization.created_at.asc())
    ).all()
    return [
        MembershipView(
            organization=org,
            role=membership.role,
            effective_role=compute_effective_role(org_type=org.type, membership=membership),
        )
        for membership, org in rows
    ]


def update_organization_settings(
    *, session: Session, ctx: OrgContext, updates: dict
) -> Organization:
    if not authz.can_manage_org_settings(ctx):
        raise _forbidden("Not allowed to update organization settings")

    org = ctx.organization
    for field in SETTINGS_FIELDS:
        if field not in updates:
            continue
        value = updates[field]
        if field == "name":
            value = (value or "").strip()
            if not value:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="Organization name is required",
                )
        elif field == "slug" and value is not None:
            value = value.strip().lower()
            if not _SLUG_RE.match(value):
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid slug")
        elif field == "country_code" and value is not None:
            value = value.strip().upper()
        setattr(org, field, value)

    session.add(org)
    try:
        with session.begin_nested():
            session.flush()
    except IntegrityError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Slug already taken") from e

    log_event(
        session=session,
        organization_id=org.id,
        actor_user_id=ctx.user.id,
        event_type="organization.settings_updated",
        event_data={"fields": sorted(k for k in updates if k in SETTINGS_FIELDS)},
    )
    return org


def list_members(*, session: Session, ctx: OrgContext) -> list[MemberView]:
    rows = session.execute(
        select(OrganizationMember, User)
        .join(User, User.id == OrganizationMember.user_id)
        .where(OrganizationMember.organization_id == ctx.organization_id)
        .order_by(OrganizationMember.created_at.asc(), OrganizationMember.id.asc())
    ).all()
    return [MemberView(membership=m, user=u) for m, u in rows]


def _require_target_membership(
    session: Session, *, organization_id: UUID, user_id: UUID
) -> OrganizationMember:
    membership = get_membership(session=session, organization_id=organization_id, user_id=user_id)
    if membership is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    return membership


def change_member_role(
    *,
    session: Session,
    ctx: OrgContext,
    target_user_id: UUID,
    new_role: OrgRole,
) -> OrganizationMember:
    """Change a member's role; promoting someone to OWNER demotes the caller to ADMIN."""
    target = _require_target_membership(
        session, organization_id=ctx.organization_id, user_id=target_user_id
    )
    if not authz.can_change_member_role(ctx, current_role=target.role, new_role=new_role):
        raise _forbidden("Not allowed to change this member's role")
    if target.role == new_role:
        return target

    old_role = target.role
    if new_role == OrgRole.OWNER:
        if target.user_id == ctx.user.id:
            return target
        acting = ctx.membership
        if acting is None or acting.role != OrgRole.OWNER:
            raise _forbidden("Only the owner can transfer ownership")
        # Demote before promoting so the single-owner index never sees two owners.
        with session.begin_nested():
            acting.role = OrgRole.ADMIN
            session.add(acting)
            session.flush()
            target.role = OrgRole.OWNER
            session.add(target)
            session.flush()
    else:
        if old_role == OrgRole.OWNER:
            # Only reachable by the owner demoting themselves; that would leave zero owners.
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Transfer ownership before changing the owner's role",
            )
        target.role = new_role
        session.add(target)
        session.flush()

    log_event(
        session=session,
        organization_id=ctx.organization_id,
        actor_user_id=ctx.user.id,
        event_type="organization.member_role_changed",
        event_data={
            "user_id": str(target_user_id),
            "from": old_role.value,
            "to": new_role.value,
        },
    )
    return target


def remove_member(*, session: Session, ctx: OrgContext, target_user_id: UUID) -> None:
    target = _require_target_membership(
        session, organization_id=ctx.organization_id, user_id=target_user_id
    )
    if not authz.can_remove_member(ctx, target_role=target.role):
        raise _forbidden("Not allowed to remove this member")

    session.delete(target)
    session.flush()
    log_event(
        session=session,
        organization_id=ctx.organization_id,
        actor_user_id=ctx.user.id,
        event_type="organization.member_removed",
        event_data={"user_id": str(target_user_id), "role": target.role.value},
    )


def create_invite(*, session: Session, ctx: OrgContext, email: str, role: OrgRole) -> Invitation:
    if not authz.can_manage_team_members(ctx):
        raise _forbidden("Not allowed to invite members")
    if ctx.is_personal_org:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Personal organizations cannot have other members",
        )
    if role == OrgRole.OWNER:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invite as ADMIN and transfer ownership instead",
        )
    email_norm = email.strip().lower()
    if "@" not in email_norm or " " in email_norm:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Invalid email"
        )

    invite = Invitation(
        organization_id=ctx.organization_id,
        invited_by_user_id=ctx.user.id,
        email=email_norm,
        role=role,
        token=new_invite_token(),
    )
    session.add(invite)
    session.flush()

    log_event(
        session=session,
        organization_id=ctx.organization_id,
        actor_user_id=ctx.user.id,
        event_type="organization.invite_created",
        event_data={"invitation_id": str(invite.id), "role": role.value},
    )
    return invite


def accept_invite(*, session: Session, user: User, token: str) -> Invitation:
    """Join the invite's org. Accepting an already accepted invite returns it unchanged."""
    invite = (
        session.execute(select(Invitation).where(Invitation.token == token.strip()).with_for_update())
        .scalars()
        .first()
    )
    if invite is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid invitation token")
    if invite.accepted:
        return invite

    existing = get_membership(session=session, organization_id=invite.organization_id, user_id=user.id)
    if existing is None:
        session.add(
            OrganizationMember(
                organization_id=invite.organization_id, user_id=user.id, role=invite.role
            )
        )

    invite.accepted = True
    invite.accepted_at = datetime.now(UTC)
    session.add(invite)
    session.flush()

    log_event(
        session=session,
        organization_id=invite.organization_id,
        actor_user_id=user.id,
        event_type="organization.invite_accepted",
        event_data={"invitation_id": str(invite.id), "already_member": existing is not None},
    )
    return invite
