from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from mediaops.core.config import get_settings
from mediaops.core.security import hash_session_token, new_random_token
from mediaops.models.auth import AuthSession
from mediaops.models.enums import AccountType, OrgRole, OrgType
from mediaops.models.identity import Organization, OrganizationMember, User
from mediaops.services.audit import log_event
from mediaops.services.org_context import get_membership, get_personal_org


@dataclass(frozen=True)
class IssuedSession:
    token: str
    csrf_token: str
    auth_session: AuthSession
    organization: Organization
    user: User
    registered: bool


def normalize_email(email: str) -> str:
    email_norm = email.strip().lower()
    if "@" not in email_norm or " " in email_norm:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Invalid email")
    return email_norm


def _personal_org_name(email: str, display_name: str | None) -> str:
    return f"{display_name or email.split('@', 1)[0]}'s workspace"


def register_user(
    *,
    session: Session,
    email: str,
    account_type: AccountType,
    display_name: str | None = None,
    external_auth_id: str | None = None,
) -> tuple[User, Organization]:
    """Create a user together with the personal organization it owns.

    Both rows and the OWNER membership land in the caller's transaction, so a
    user never exists without its personal workspace.
    """
    user = User(
        email=email,
        account_type=account_type,
        display_name=display_name,
        external_auth_id=external_auth_id,
    )
    session.add(user)
    session.flush()

    org = Organization(
        name=_personal_org_name(email, display_name),
        type=OrgType.PERSONAL,
        personal_owner_user_id=user.id,
    )
    session.add(org)
    session.flush()
    session.add(OrganizationMember(organization_id=org.id, user_id=user.id, role=OrgRole.OWNER))
    session.flush()

    log_event(
        session=session,
        organization_id=org.id,
        actor_user_id=user.id,
        event_type="user.registered",
        event_data={"account_type": account_type.value},
    )
    return user, org


def _find_or_register(
    session: Session, *, email: str, account_type: AccountType, display_name: str | None
) -> tuple[User, Organization, bool]:
    user = session.execute(select(User).where(User.email == email)).scalars().first()
    if user is None:
        user, org = register_user(
            session=session, email=email, account_type=account_type, display_name=display_name
        )
        return user, org, True

    if user.is_disabled:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User disabled")
    org = get_personal_org(session=session, user_id=user.id)
    if org is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Personal organization missing"
        )
    return user, org, False


def create_dev_session(
    *,
    session: Session,
    email: str,
    account_type: AccountType,
    display_name: str | None = None,
    user_agent: str | None = None,
) -> IssuedSession:
    """Log in by email alone; registers unknown emails. Dev environments only."""
    settings = get_settings()
    if not settings.ALLOW_DEV_LOGIN:
        # Looks like any other unknown route outside dev.
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    user, org, registered = _find_or_register(
        session,
        email=normalize_email(email),
        account_type=account_type,
        display_name=(display_name or "").strip() or None,
    )

    token = new_random_token()
    auth_session = AuthSession(
        user_id=user.id,
        active_organization_id=org.id,
        token_hash=hash_session_token(token),
        user_agent=(user_agent or "")[:512] or None,
        expires_at=datetime.now(UTC) + timedelta(seconds=settings.SESSION_TTL_SECONDS),
    )
    session.add(auth_session)
    session.flush()

    log_event(
        session=session,
        organization_id=org.id,
        actor_user_id=user.id,
        event_type="auth.dev_login",
        event_data={"registered": registered},
    )
    return IssuedSession(
        token=token,
        csrf_token=new_random_token(),
        auth_session=auth_session,
        organization=org,
        user=user,
        registered=registered,
    )


def revoke_session(*, session: Session, auth_session: AuthSession, user: User, reason: str) -> None:
    auth_session.revoked_at = datetime.now(UTC)
    auth_session.revoked_reason = reason
    session.add(auth_session)
    log_event(
        session=session,
        organization_id=auth_session.active_organization_id,
        actor_user_id=user.id,
        event_type="auth.logout",
        event_data={"reason": reason},
    )


def switch_org(
    *,
    session: Session,
    auth_session: AuthSession,
    user: User,
    organization_id: UUID,
) -> OrganizationMember:
    """Persist the active-org preference; only organizations the user belongs to."""
    membership = get_membership(session=session, organization_id=organization_id, user_id=user.id)
    if membership is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this organization"
        )

    auth_session.active_organization_id = organization_id
    session.add(auth_session)
    log_event(
        session=session,
        organization_id=organization_id,
        actor_user_id=user.id,
        event_type="auth.switch_org",
        event_data={"role": membership.role.value},
    )
    return membership
