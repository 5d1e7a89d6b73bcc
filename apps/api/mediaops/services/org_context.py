from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from mediaops.core.deps import OrgContext
from mediaops.models.auth import AuthSession
from mediaops.models.enums import EffectiveRole, OrgRole, OrgType
from mediaops.models.identity import Organization, OrganizationMember, User


def compute_effective_role(
    *, org_type: OrgType, membership: OrganizationMember | None
) -> EffectiveRole:
    if membership is None:
        return EffectiveRole.NONE
    if org_type == OrgType.PERSONAL and membership.role == OrgRole.OWNER:
        return EffectiveRole.PERSONAL_OWNER
    return EffectiveRole(membership.role.value)


def get_personal_org(*, session: Session, user_id: UUID) -> Organization | None:
    return (
        session.execute(
            select(Organization).where(
                Organization.type == OrgType.PERSONAL,
                Organization.personal_owner_user_id == user_id,
            )
        )
        .scalars()
        .first()
    )


def get_membership(
    *, session: Session, organization_id: UUID, user_id: UUID
) -> OrganizationMember | None:
    return (
        session.execute(
            select(OrganizationMember).where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.user_id == user_id,
            )
        )
        .scalars()
        .first()
    )


def _parse_org_id(raw: str) -> UUID:
    try:
        return UUID(raw.strip())
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid organization id"
        ) from e


def build_org_context(
    *,
    session: Session,
    user: User,
    auth_session: AuthSession | None,
    requested_org_id: str | None,
) -> OrgContext:
    """Resolve the active organization and the caller's standing in it.

    Source order: explicit header, the session's stored preference, then the
    caller's personal organization. A missing membership yields NONE; callers
    decide whether that is fatal.
    """
    org: Organization | None
    if requested_org_id and requested_org_id.strip():
        org = session.get(Organization, _parse_org_id(requested_org_id))
    elif auth_session is not None:
        org = session.get(Organization, auth_session.active_organization_id)
    else:
        org = get_personal_org(session=session, user_id=user.id)

    if org is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")

    membership = get_membership(session=session, organization_id=org.id, user_id=user.id)
    return OrgContext(
        organization=org,
        membership=membership,
        effective_role=compute_effective_role(org_type=org.type, membership=membership),
        user=user,
        auth_session=auth_session,
    )
