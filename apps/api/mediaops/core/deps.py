from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from mediaops.core.config import get_settings
from mediaops.core.security import hash_session_token, tokens_match
from mediaops.db.session import get_session
from mediaops.models.auth import AuthSession
from mediaops.models.enums import EffectiveRole, OrgType
from mediaops.models.identity import Organization, OrganizationMember, User

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

SessionAuth = tuple[AuthSession, User]


@dataclass(frozen=True)
class OrgContext:
    """Per-request organization scope, built once and passed into every service call."""

    organization: Organization
    membership: OrganizationMember | None
    effective_role: EffectiveRole
    user: User
    auth_session: AuthSession | None = None

    @property
    def organization_id(self) -> UUID:
        return self.organization.id

    @property
    def is_personal_org(self) -> bool:
        return self.organization.type == OrgType.PERSONAL

    @property
    def is_member(self) -> bool:
        return self.membership is not None


def require_csrf_header(request: Request) -> None:
    if request.method in SAFE_METHODS:
        return

    settings = get_settings()
    cookie_token = request.cookies.get(settings.CSRF_COOKIE_NAME)
    header_token = request.headers.get(settings.CSRF_HEADER_NAME)

    if not tokens_match(cookie_token, header_token):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="CSRF token missing or invalid",
        )


def _load_session(request: Request, session: Session) -> SessionAuth | None:
    """Resolve the session cookie. No cookie is anonymous; a bad cookie is a 401."""
    raw = request.cookies.get(get_settings().SESSION_COOKIE_NAME)
    if not raw:
        return None

    auth_session = session.execute(
        select(AuthSession).where(AuthSession.token_hash == hash_session_token(raw))
    ).scalar_one_or_none()
    if auth_session is None or not auth_session.is_usable(datetime.now(UTC)):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")

    user = session.get(User, auth_session.user_id)
    if user is None or user.is_disabled:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="User disabled or missing"
        )
    return auth_session, user


def require_session(
    request: Request,
    session: Session = Depends(get_session),
) -> SessionAuth:
    auth = _load_session(request, session)
    if auth is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return auth


def optional_session(
    request: Request,
    session: Session = Depends(get_session),
) -> SessionAuth | None:
    return _load_session(request, session)


def require_org(
    request: Request,
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> OrgContext:
    # services.org_context imports OrgContext from this module.
    from mediaops.services.org_context import build_org_context

    auth_session, user = auth
    settings = get_settings()
    return build_org_context(
        session=session,
        user=user,
        auth_session=auth_session,
        requested_org_id=request.headers.get(settings.ORG_ID_HEADER),
    )


def require_member(org: OrgContext = Depends(require_org)) -> OrgContext:
    if org.effective_role == EffectiveRole.NONE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this organization"
        )
    return org
