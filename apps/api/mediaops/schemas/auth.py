from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from mediaops.models.enums import AccountType, EffectiveRole, OrgRole, OrgType


class CsrfTokenResponse(BaseModel):
    csrf_token: str


class DevLoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    # Only used when the email registers a new user.
    account_type: AccountType = AccountType.PROVIDER
    display_name: str | None = Field(default=None, max_length=200)


class SwitchOrgRequest(BaseModel):
    organization_id: UUID


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    display_name: str | None
    account_type: AccountType


class OrganizationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    type: OrgType


class SessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    expires_at: datetime


class LoginResponse(BaseModel):
    user: UserOut
    organization: OrganizationOut
    # Login always lands in the personal workspace.
    role: EffectiveRole
    session: SessionOut
    csrf_token: str
    registered: bool = False


class StatusResponse(BaseModel):
    status: str = "ok"


class SwitchOrgResponse(BaseModel):
    organization_id: UUID
    role: OrgRole
