from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mediaops.core.deps import SessionAuth, require_csrf_header, require_session
from mediaops.db.session import get_session
from mediaops.schemas.availability import (
    AvailabilityOut,
    AvailabilityStatusUpdateRequest,
    WorkHoursUpdateRequest,
)
from mediaops.services.availability import (
    WorkHours,
    get_user_availability,
    update_availability_status,
    update_work_hours,
)

router = APIRouter(
    prefix="/availability", tags=["availability"], dependencies=[Depends(require_csrf_header)]
)


@router.get("", response_model=AvailabilityOut)
def availability_get(
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> AvailabilityOut:
    _auth_session, user = auth
    return get_user_availability(session=session, user_id=user.id)


@router.patch("/status", response_model=AvailabilityOut)
def availability_update_status(
    payload: AvailabilityStatusUpdateRequest,
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> AvailabilityOut:
    _auth_session, user = auth
    result = update_availability_status(
        session=session, user_id=user.id, updates=payload.model_dump(exclude_unset=True)
    )
    session.commit()
    return result


@router.put("/work-hours", response_model=AvailabilityOut)
def availability_update_work_hours(
    payload: WorkHoursUpdateRequest,
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> AvailabilityOut:
    _auth_session, user = auth
    hours = [
        WorkHours(
            day_of_week=wh.day_of_week,
            is_enabled=wh.is_enabled,
            start_time=wh.start_time,
            end_time=wh.end_time,
        )
        for wh in payload.work_hours
    ]
    result = update_work_hours(session=session, user_id=user.id, hours=hours)
    session.commit()
    return result
