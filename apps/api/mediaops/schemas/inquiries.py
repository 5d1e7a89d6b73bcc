from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from mediaops.models.enums import InquiryStatus


class InquiryCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=320)
    phone: str | None = Field(default=None, max_length=64)
    address: str | None = Field(default=None, max_length=500)
    message: str | None = Field(default=None, max_length=5000)


class InquiryUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: str | None = Field(default=None, min_length=3, max_length=320)
    phone: str | None = Field(default=None, max_length=64)
    address: str | None = Field(default=None, max_length=500)
    message: str | None = Field(default=None, max_length=5000)
    status: InquiryStatus | None = None


class InquiryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    name: str
    email: str
    phone: str | None
    address: str | None
    message: str | None
    status: InquiryStatus
    converted_project_id: UUID | None
    created_at: datetime
    updated_at: datetime
