from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID
from zoneinfo import ZoneInfo

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from mediaops.core.config import get_settings
from mediaops.models.availability import UserAvailabilityStatus, UserWorkHours
from mediaops.models.enums import DayOfWeek

DAYS_ORDER: tuple[DayOfWeek, ...] = (
    DayOfWeek.MONDAY,
    DayOfWeek.TUESDAY,
    DayOfWeek.WEDNESDAY,
    DayOfWeek.THURSDAY,
    DayOfWeek.FRIDAY,
    DayOfWeek.SATURDAY,
    DayOfWeek.SUNDAY,
)
_WEEKEND = {DayOfWeek.SATURDAY, DayOfWeek.SUNDAY}
_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


@dataclass(frozen=True)
class WorkHours:
    day_of_week: DayOfWeek
    is_enabled: bool
    start_time: str
    end_time: str


@dataclass(frozen=True)
class AvailabilitySettings:
    is_available: bool
    availability_note: str | None
    auto_decline_bookings: bool
    work_hours: list[WorkHours]


@dataclass(frozen=True)
class AvailabilityCheck:
    available: bool
    reason: str | None = None


def default_work_hours() -> list[WorkHours]:
    return [
        WorkHours(day_of_week=day, is_enabled=day not in _WEEKEND, start_time="09:00", end_time="17:00")
        for day in DAYS_ORDER
    ]


def get_user_availability(*, session: Session, user_id: UUID) -> AvailabilitySettings:
    row = session.get(UserAvailabilityStatus, user_id)
    stored = {
        wh.day_of_week: wh
        for wh in session.execute(
            select(UserWorkHours).where(UserWorkHours.user_id == user_id)
        ).scalars()
    }
    hours: list[WorkHours] = []
    for default in default_work_hours():
        wh = stored.get(default.day_of_week)
        if wh is None:
            hours.append(default)
        else:
            hours.append(
                WorkHours(
                    day_of_week=wh.day_of_week,
                    is_enabled=wh.is_enabled,
                    start_time=wh.start_time,
                    end_time=wh.end_time,
                )
            )

    return AvailabilitySettings(
        is_available=row.is_available if row is not None else True,
        availability_note=row.availability_note if row is not None else None,
        auto_decline_bookings=row.auto_decline_bookings if row is not None else False,
        work_hours=hours,
    )


def update_availability_status(
    *,
    session: Session,
    user_id: UUID,
    updates: dict,
) -> AvailabilitySettings:
    row = session.get(UserAvailabilityStatus, user_id)
    if row is None:
        row = UserAvailabilityStatus(user_id=user_id, is_available=True, auto_decline_bookings=False)
        session.add(row)

    for field in ("is_available", "availability_note", "auto_decline_bookings"):
        if field in updates:
            value = updates[field]
            if field != "availability_note" and value is None:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail=f"{field} cannot be null",
                )
            setattr(row, field, value)
    session.flush()
    return get_user_availability(session=session, user_id=user_id)


def update_work_hours(
    *, session: Session, user_id: UUID, hours: list[WorkHours]
) -> AvailabilitySettings:
    seen: set[DayOfWeek] = set()
    for wh in hours:
        if wh.day_of_week in seen:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Duplicate day: {wh.day_of_week.value}",
            )
        seen.add(wh.day_of_week)
        if not _HHMM.match(wh.start_time) or not _HHMM.match(wh.end_time):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Times must be HH:MM"
            )
        if wh.start_time >= wh.end_time:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{wh.day_of_week.value}: start_time must be before end_time",
            )

    existing = {
        row.day_of_week: row
        for row in session.execute(
            select(UserWorkHours).where(UserWorkHours.user_id == user_id)
        ).scalars()
    }
    for wh in hours:
        row = existing.get(wh.day_of_week)
        if row is None:
            row = UserWorkHours(user_id=user_id, day_of_week=wh.day_of_week)
            session.add(row)
        row.is_enabled = wh.is_enabled
        row.start_time = wh.start_time
        row.end_time = wh.end_time
    session.flush()
    return get_user_availability(session=session, user_id=user_id)


def is_user_available_at(*, session: Session, user_id: UUID, when: datetime) -> AvailabilityCheck:
    availability = get_user_availability(session=session, user_id=user_id)
    if not availability.is_available:
        return AvailabilityCheck(
            available=False,
            reason=availability.availability_note or "User is marked as unavailable",
        )

    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    local = when.astimezone(ZoneInfo(get_settings().AVAILABILITY_TIMEZONE))
    day = DAYS_ORDER[local.weekday()]
    hours = next(wh for wh in availability.work_hours if wh.day_of_week == day)
    if not hours.is_enabled:
        return AvailabilityCheck(
            available=False, reason=f"User does not work on {day.value.lower()}s"
        )

    hhmm = local.strftime("%H:%M")
    # End time is exclusive.
    if hhmm < hours.start_time or hhmm >= hours.end_time:
        return AvailabilityCheck(
            available=False,
            reason=f"Outside work hours ({hours.start_time} - {hours.end_time})",
        )
    return AvailabilityCheck(available=True)
