from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, LargeBinary, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from mediaops.models.base import Base, created_ts, uuid_pk


class AuthSession(Base):
    """A browser login. Only the HMAC of the cookie token is stored."""

    __tablename__ = "auth_sessions"

    id: Mapped[uuid_pk]
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    # Stored active-org preference; the x-org-id header overrides it per request.
    active_organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE")
    )

    token_hash: Mapped[bytes] = mapped_column(LargeBinary, unique=True)
    user_agent: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[created_ts]
    last_seen_at: Mapped[datetime] = mapped_column(server_default=text("now()"))
    expires_at: Mapped[datetime]
    revoked_at: Mapped[datetime | None]
    revoked_reason: Mapped[str | None] = mapped_column(Text)

    def is_usable(self, now: datetime) -> bool:
        return self.revoked_at is None and self.expires_at > now
