from __future__ import annotations

from pydantic import BaseModel

from mediaops.schemas.auth import OrganizationOut, UserOut


class MembershipOut(BaseModel):
    organization: OrganizationOut
    role: str
    effective_role: str


class MeResponse(BaseModel):
    user: UserOut
    organization: OrganizationOut
    role: str
    memberships: list[MembershipOut]
