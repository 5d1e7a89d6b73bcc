from __future__ import annotations

import enum


class AccountType(enum.StrEnum):
    AGENT = "AGENT"
    PROVIDER = "PROVIDER"
    COMPANY = "COMPANY"


class OrgType(enum.StrEnum):
    PERSONAL = "PERSONAL"
    TEAM = "TEAM"
    COMPANY = "COMPANY"


class OrgRole(enum.StrEnum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    TECHNICIAN = "TECHNICIAN"
    EDITOR = "EDITOR"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    AGENT = "AGENT"


class EffectiveRole(enum.StrEnum):
    """Role used for every authorization decision; derived, never persisted."""

    PERSONAL_OWNER = "PERSONAL_OWNER"
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    TECHNICIAN = "TECHNICIAN"
    EDITOR = "EDITOR"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    AGENT = "AGENT"
    NONE = "NONE"


class ProjectStatus(enum.StrEnum):
    BOOKED = "BOOKED"
    SHOOTING = "SHOOTING"
    EDITING = "EDITING"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class ClientApprovalStatus(enum.StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"


class ProjectChatChannel(enum.StrEnum):
    TEAM = "TEAM"
    CUSTOMER = "CUSTOMER"


class MediaType(enum.StrEnum):
    PHOTO = "PHOTO"
    VIDEO = "VIDEO"
    VIRTUAL_TOUR = "VIRTUAL_TOUR"
    FLOORPLAN = "FLOORPLAN"


class DownloadArtifactType(enum.StrEnum):
    ALL = "ALL"
    PHOTOS_ONLY = "PHOTOS_ONLY"
    VIDEOS_ONLY = "VIDEOS_ONLY"


class DownloadArtifactStatus(enum.StrEnum):
    PENDING = "PENDING"
    GENERATING = "GENERATING"
    READY = "READY"
    FAILED = "FAILED"


class InquiryStatus(enum.StrEnum):
    NEW = "NEW"
    CONTACTED = "CONTACTED"
    CONVERTED_TO_PROJECT = "CONVERTED_TO_PROJECT"
    CLOSED = "CLOSED"


class NotificationType(enum.StrEnum):
    PROJECT_ASSIGNED = "PROJECT_ASSIGNED"
    PROJECT_DELIVERED = "PROJECT_DELIVERED"
    PROJECT_APPROVED = "PROJECT_APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    NEW_MESSAGE = "NEW_MESSAGE"


class DayOfWeek(enum.StrEnum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"


class JobStatus(enum.StrEnum):
    queued = "queued"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"
    cancelled = "cancelled"


class JobType(enum.StrEnum):
    calendar_sync = "calendar_sync"
    calendar_remove = "calendar_remove"
    delivery_email = "delivery_email"
    media_blob_delete = "media_blob_delete"
