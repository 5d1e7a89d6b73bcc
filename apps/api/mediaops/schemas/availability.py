from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from mediaops.models.enums import DayOfWeek


class WorkHoursIn(BaseModel):
    day_of_week: DayOfWeek
    is_enabled: bool = True
    start_time: str = Field(min_length=5, max_length=5)
    end_time: str = Field(min_length=5, max_length=5)


class WorkHoursOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day_of_week: DayOfWeek
    is_enabled: bool
    start_time: str
    end_time: str


class AvailabilityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_available: bool
    availability_note: str | None
    auto_decline_bookings: bool
    work_hours: list[WorkHoursOut]


class AvailabilityStatusUpdateRequest(BaseModel):
    is_available: bool | None = None
    availability_note: str | None = Field(default=None, max_length=500)
    auto_decline_bookings: bool | None = None


class WorkHoursUpdateRequest(BaseModel):
    work_hours: list[WorkHoursIn] = Field(min_length=1, max_length=7)
