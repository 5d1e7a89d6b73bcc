from __future__ import annotations

from mediaops.models.artifacts import DownloadArtifact  # noqa: F401
from mediaops.models.audit import AuditEvent  # noqa: F401
from mediaops.models.auth import AuthSession  # noqa: F401
from mediaops.models.availability import UserAvailabilityStatus, UserWorkHours  # noqa: F401
from mediaops.models.base import Base as Base  # noqa: F401
from mediaops.models.enums import (  # noqa: F401
    AccountType,
    ClientApprovalStatus,
    DayOfWeek,
    DownloadArtifactStatus,
    DownloadArtifactType,
    EffectiveRole,
    InquiryStatus,
    JobStatus,
    JobType,
    MediaType,
    NotificationType,
    OrgRole,
    OrgType,
    ProjectChatChannel,
    ProjectStatus,
)
from mediaops.models.identity import (  # noqa: F401
    Invitation,
    Organization,
    OrganizationCustomer,
    OrganizationMember,
    User,
)
from mediaops.models.jobs import BgJob  # noqa: F401
from mediaops.models.notifications import Notification  # noqa: F401
from mediaops.models.projects import (  # noqa: F401
    CalendarEvent,
    Inquiry,
    Media,
    Project,
    ProjectMessage,
)
