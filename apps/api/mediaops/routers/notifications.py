from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mediaops.core.deps import SessionAuth, require_csrf_header, require_session
from mediaops.db.session import get_session
from mediaops.schemas.notifications import MarkAllReadResponse, NotificationOut, UnreadCountResponse
from mediaops.services.notifications import (
    list_notifications,
    mark_all_read,
    mark_read,
    unread_count,
)

router = APIRouter(
    prefix="/notifications", tags=["notifications"], dependencies=[Depends(require_csrf_header)]
)


@router.get("", response_model=list[NotificationOut])
def notifications_list(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> list[NotificationOut]:
    _auth_session, user = auth
    return list_notifications(session=session, user_id=user.id, unread_only=unread_only, limit=limit)


@router.get("/unread-count", response_model=UnreadCountResponse)
def notifications_unread_count(
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> UnreadCountResponse:
    _auth_session, user = auth
    return UnreadCountResponse(unread=unread_count(session=session, user_id=user.id))


@router.post("/{notification_id}/read", response_model=NotificationOut)
def notifications_mark_read(
    notification_id: UUID,
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> NotificationOut:
    _auth_session, user = auth
    notification = mark_read(session=session, user_id=user.id, notification_id=notification_id)
    session.commit()
    return notification


@router.post("/read-all", response_model=MarkAllReadResponse)
def notifications_mark_all_read(
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> MarkAllReadResponse:
    _auth_session, user = auth
    updated = mark_all_read(session=session, user_id=user.id)
    session.commit()
    return MarkAllReadResponse(updated=updated)
