from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from mediaops.models.base import Base, created_ts, updated_ts, uuid_pk
from mediaops.models.enums import (
    ClientApprovalStatus,
    InquiryStatus,
    MediaType,
    ProjectChatChannel,
    ProjectStatus,
)


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[uuid_pk]
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    customer_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("organization_customers.id", ondelete="SET NULL"), nullable=True
    )
    technician_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    editor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    project_manager_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    status: Mapped[ProjectStatus] = mapped_column(
        Enum(ProjectStatus, name="project_status", create_type=False),
        nullable=False,
        server_default=text("'BOOKED'"),
    )

    address_line1: Mapped[str | None] = mapped_column(Text, nullable=True)
    address_line2: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(Text, nullable=True)
    region: Mapped[str | None] = mapped_column(Text, nullable=True)
    postal_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    scheduled_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    delivery_token: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    delivery_enabled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    client_approval_status: Mapped[ClientApprovalStatus] = mapped_column(
        Enum(ClientApprovalStatus, name="client_approval_status", create_type=False),
        nullable=False,
        server_default=text("'PENDING'"),
    )
    client_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    client_approved_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[created_ts]
    updated_at: Mapped[updated_ts]


class ProjectMessage(Base):
    __tablename__ = "project_messages"

    id: Mapped[uuid_pk]
    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    channel: Mapped[ProjectChatChannel] = mapped_column(
        Enum(ProjectChatChannel, name="project_chat_channel", create_type=False),
        nullable=False,
        server_default=text("'TEAM'"),
    )
    thread_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("project_messages.id", ondelete="CASCADE"), nullable=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[created_ts]


class Media(Base):
    __tablename__ = "media"

    id: Mapped[uuid_pk]
    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    uploaded_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[MediaType] = mapped_column(
        Enum(MediaType, name="media_type", create_type=False), nullable=False
    )
    storage_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    cdn_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    filename: Mapped[str] = mapped_column(Text, nullable=False)
    size_bytes: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[created_ts]


class CalendarEvent(Base):
    __tablename__ = "calendar_events"

    id: Mapped[uuid_pk]
    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    grant_id: Mapped[str] = mapped_column(Text, nullable=False)
    external_event_id: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[created_ts]
    updated_at: Mapped[updated_ts]


class Inquiry(Base):
    __tablename__ = "inquiries"

    id: Mapped[uuid_pk]
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[InquiryStatus] = mapped_column(
        Enum(InquiryStatus, name="inquiry_status", create_type=False),
        nullable=False,
        server_default=text("'NEW'"),
    )
    converted_project_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[created_ts]
    updated_at: Mapped[updated_ts]
