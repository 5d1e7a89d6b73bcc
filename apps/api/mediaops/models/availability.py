from __future__ import annotations

from uuid import UUID

from sqlalchemy import Boolean, Enum, ForeignKey, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from mediaops.models.base import Base, updated_ts, uuid_pk
from mediaops.models.enums import DayOfWeek


class UserAvailabilityStatus(Base):
    __tablename__ = "user_availability_status"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    availability_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    auto_decline_bookings: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    updated_at: Mapped[updated_ts]


class UserWorkHours(Base):
    __tablename__ = "user_work_hours"

    id: Mapped[uuid_pk]
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day_of_week: Mapped[DayOfWeek] = mapped_column(
        Enum(DayOfWeek, name="day_of_week", create_type=False), nullable=False
    )
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    # "HH:MM", compared lexically.
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
