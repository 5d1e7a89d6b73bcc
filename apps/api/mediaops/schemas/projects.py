from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from mediaops.models.enums import (
    ClientApprovalStatus,
    DownloadArtifactStatus,
    DownloadArtifactType,
    MediaType,
    ProjectChatChannel,
    ProjectStatus,
)


class ProjectCreateRequest(BaseModel):
    customer_id: UUID | None = None
    address_line1: str | None = Field(default=None, max_length=200)
    address_line2: str | None = Field(default=None, max_length=200)
    city: str | None = Field(default=None, max_length=120)
    region: str | None = Field(default=None, max_length=120)
    postal_code: str | None = Field(default=None, max_length=32)
    notes: str | None = Field(default=None, max_length=5000)
    scheduled_time: datetime | None = None


class ProjectUpdateRequest(BaseModel):
    address_line1: str | None = Field(default=None, max_length=200)
    address_line2: str | None = Field(default=None, max_length=200)
    city: str | None = Field(default=None, max_length=120)
    region: str | None = Field(default=None, max_length=120)
    postal_code: str | None = Field(default=None, max_length=32)
    notes: str | None = Field(default=None, max_length=5000)
    scheduled_time: datetime | None = None


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    customer_id: UUID | None
    technician_id: UUID | None
    editor_id: UUID | None
    project_manager_id: UUID | None
    status: ProjectStatus
    address_line1: str | None
    address_line2: str | None
    city: str | None
    region: str | None
    postal_code: str | None
    notes: str | None
    scheduled_time: datetime | None
    delivery_token: str | None
    delivery_enabled_at: datetime | None
    client_approval_status: ClientApprovalStatus
    client_approved_at: datetime | None
    created_at: datetime
    updated_at: datetime


class AssignUserRequest(BaseModel):
    user_id: UUID | None


class AssignCustomerRequest(BaseModel):
    customer_id: UUID | None


class AssignmentResponse(BaseModel):
    project: ProjectOut
    changed: bool
    warning: str | None


class StatusUpdateRequest(BaseModel):
    status: ProjectStatus


class MessageCreateRequest(BaseModel):
    channel: ProjectChatChannel = ProjectChatChannel.TEAM
    content: str = Field(min_length=1, max_length=10_000)
    thread_id: UUID | None = None


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    user_id: UUID
    channel: ProjectChatChannel
    thread_id: UUID | None
    content: str
    created_at: datetime


class MediaCreateRequest(BaseModel):
    type: MediaType
    filename: str = Field(min_length=1, max_length=255)
    storage_key: str | None = Field(default=None, max_length=1024)
    cdn_url: str | None = Field(default=None, max_length=2048)
    size_bytes: int | None = Field(default=None, ge=0)


class MediaOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    uploaded_by_id: UUID | None
    type: MediaType
    storage_key: str | None
    cdn_url: str | None
    filename: str
    size_bytes: int | None
    created_at: datetime


class ArtifactRequest(BaseModel):
    type: DownloadArtifactType = DownloadArtifactType.ALL


class ArtifactOut(BaseModel):
    id: UUID
    project_id: UUID
    type: DownloadArtifactType
    status: DownloadArtifactStatus
    retry_count: int
    error: str | None
    filename: str | None
    size_bytes: int | None
    download_url: str | None
    created_at: datetime
    updated_at: datetime
