from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mediaops.core.deps import OrgContext, require_org
from mediaops.db.session import get_session
from mediaops.schemas.me import MembershipOut, MeResponse
from mediaops.services.organizations import list_user_organizations

router = APIRouter(tags=["me"])


@router.get("/me", response_model=MeResponse)
def me(
    org: OrgContext = Depends(require_org), session: Session = Depends(get_session)
) -> MeResponse:
    memberships = list_user_organizations(session=session, user_id=org.user.id)
    return MeResponse(
        user=org.user,
        organization=org.organization,
        role=org.effective_role.value,
        memberships=[
            MembershipOut(
                organization=m.organization,
                role=m.role.value,
                effective_role=m.effective_role.value,
            )
            for m in memberships
        ],
    )
