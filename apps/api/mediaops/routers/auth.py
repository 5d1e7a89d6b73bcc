from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from mediaops.core.deps import SessionAuth, require_csrf_header, require_session
from mediaops.core.security import (
    clear_auth_cookies,
    new_random_token,
    set_auth_cookies,
    set_csrf_cookie,
)
from mediaops.db.session import get_session
from mediaops.models.enums import EffectiveRole
from mediaops.schemas.auth import (
    CsrfTokenResponse,
    DevLoginRequest,
    LoginResponse,
    StatusResponse,
    SwitchOrgRequest,
    SwitchOrgResponse,
)
from mediaops.services.auth.sessions import create_dev_session, revoke_session, switch_org

router = APIRouter(prefix="/auth", tags=["auth"], dependencies=[Depends(require_csrf_header)])


def _no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"


@router.get("/csrf", response_model=CsrfTokenResponse)
def issue_csrf(response: Response) -> CsrfTokenResponse:
    token = new_random_token()
    set_csrf_cookie(response, token)
    _no_store(response)
    return CsrfTokenResponse(csrf_token=token)


@router.post("/dev/login", response_model=LoginResponse)
def dev_login(
    payload: DevLoginRequest,
    request: Request,
    response: Response,
    session: Session = Depends(get_session),
) -> LoginResponse:
    issued = create_dev_session(
        session=session,
        email=payload.email,
        account_type=payload.account_type,
        display_name=payload.display_name,
        user_agent=request.headers.get("user-agent"),
    )
    session.commit()

    set_auth_cookies(response, session_token=issued.token, csrf_token=issued.csrf_token)
    _no_store(response)
    return LoginResponse(
        user=issued.user,
        organization=issued.organization,
        role=EffectiveRole.PERSONAL_OWNER,
        session=issued.auth_session,
        csrf_token=issued.csrf_token,
        registered=issued.registered,
    )


@router.post("/logout", response_model=StatusResponse)
def logout(
    response: Response,
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> StatusResponse:
    auth_session, user = auth
    revoke_session(session=session, auth_session=auth_session, user=user, reason="logout")
    session.commit()

    clear_auth_cookies(response)
    _no_store(response)
    return StatusResponse()


@router.post("/switch-org", response_model=SwitchOrgResponse)
def switch_active_org(
    payload: SwitchOrgRequest,
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> SwitchOrgResponse:
    auth_session, user = auth
    membership = switch_org(
        session=session,
        auth_session=auth_session,
        user=user,
        organization_id=payload.organization_id,
    )
    session.commit()
    return SwitchOrgResponse(organization_id=payload.organization_id, role=membership.role)
