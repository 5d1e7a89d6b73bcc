from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from mediaops.models.enums import ClientApprovalStatus, ProjectStatus
from mediaops.schemas.projects import MediaOut, MessageOut


class DeliveryProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    address_line1: str | None
    city: str | None
    region: str | None
    scheduled_time: datetime | None
    status: ProjectStatus
    client_approval_status: ClientApprovalStatus
    client_approved_at: datetime | None
    delivery_enabled_at: datetime | None


class DeliveryOrganizationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    logo_url: str | None
    primary_email: str | None
    phone: str | None


class DeliveryCustomerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str | None


class DeliveryResponse(BaseModel):
    project: DeliveryProjectOut
    organization: DeliveryOrganizationOut
    customer: DeliveryCustomerOut | None
    media: list[MediaOut]
    comments: list[MessageOut]
    can_approve: bool


class CommentCreateRequest(BaseModel):
    content: str = Field(min_length=1, max_length=10_000)


class ChangeRequest(BaseModel):
    feedback: str = Field(min_length=1, max_length=10_000)


class ApprovalResponse(BaseModel):
    client_approval_status: ClientApprovalStatus
    client_approved_at: datetime | None


class ChangeRequestResponse(BaseModel):
    client_approval_status: ClientApprovalStatus
    message: MessageOut
