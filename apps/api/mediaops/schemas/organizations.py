from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from mediaops.models.enums import OrgRole, OrgType
from mediaops.schemas.auth import UserOut


class OrganizationCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    type: OrgType = OrgType.COMPANY


class OrganizationDetailOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    type: OrgType
    legal_name: str | None
    slug: str | None
    logo_url: str | None
    website_url: str | None
    phone: str | None
    primary_email: str | None
    address_line1: str | None
    address_line2: str | None
    city: str | None
    region: str | None
    postal_code: str | None
    country_code: str | None
    timezone: str | None
    service_area: str | None
    created_at: datetime


class OrganizationSettingsUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    legal_name: str | None = Field(default=None, max_length=200)
    slug: str | None = Field(default=None, max_length=64)
    logo_url: str | None = Field(default=None, max_length=2048)
    website_url: str | None = Field(default=None, max_length=2048)
    phone: str | None = Field(default=None, max_length=64)
    primary_email: str | None = Field(default=None, max_length=320)
    address_line1: str | None = Field(default=None, max_length=200)
    address_line2: str | None = Field(default=None, max_length=200)
    city: str | None = Field(default=None, max_length=120)
    region: str | None = Field(default=None, max_length=120)
    postal_code: str | None = Field(default=None, max_length=32)
    country_code: str | None = Field(default=None, min_length=2, max_length=2)
    timezone: str | None = Field(default=None, max_length=64)
    service_area: str | None = Field(default=None, max_length=500)


class MyOrganizationOut(BaseModel):
    organization: OrganizationDetailOut
    role: OrgRole
    effective_role: str


class MemberOut(BaseModel):
    user: UserOut
    role: OrgRole
    joined_at: datetime


class MemberRoleUpdateRequest(BaseModel):
    role: OrgRole


class InviteCreateRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    role: OrgRole


class InviteAcceptRequest(BaseModel):
    token: str = Field(min_length=1, max_length=200)


class InvitationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    email: str
    role: OrgRole
    token: str
    accepted: bool
    accepted_at: datetime | None
    created_at: datetime


class AuditEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    actor_user_id: UUID | None
    project_id: UUID | None
    event_type: str
    event_data: dict
    created_at: datetime
