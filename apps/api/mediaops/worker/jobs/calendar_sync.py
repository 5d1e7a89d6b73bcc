from __future__ import annotations

import logging
from datetime import timedelta
from typing import NoReturn
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from mediaops.core.config import get_settings
from mediaops.models.enums import JobType, ProjectStatus
from mediaops.models.identity import Organization, OrganizationCustomer, User
from mediaops.models.projects import CalendarEvent, Project
from mediaops.services.notifications import project_address
from mediaops.services.nylas import CalendarEventInput, NylasApiError, create_event, update_event
from mediaops.worker.errors import PermanentJobError
from mediaops.worker.queue import enqueue_job

logger = logging.getLogger("mediaops.worker")


def calendar_sync(*, session: Session, payload: dict) -> None:
    project_id_raw = payload.get("project_id")
    if not project_id_raw:
        raise PermanentJobError("calendar_sync payload missing project_id")

    project = session.get(Project, UUID(str(project_id_raw)), with_for_update=True)
    if project is None:
        logger.info("calendar_sync: project %s no longer exists", project_id_raw)
        return
    if (
        project.technician_id is None
        or project.scheduled_time is None
        or project.status == ProjectStatus.CANCELLED
    ):
        return

    technician = session.get(User, project.technician_id)
    if technician is None or not technician.calendar_grant_id:
        logger.debug("calendar_sync: technician for project %s has no calendar", project.id)
        return

    settings = get_settings()
    if not settings.NYLAS_API_KEY:
        logger.info("calendar_sync: calendar integration not configured; skipping %s", project.id)
        return

    event = _build_event_input(session=session, project=project)
    grant_id = technician.calendar_grant_id
    existing = (
        session.execute(select(CalendarEvent).where(CalendarEvent.project_id == project.id))
        .scalars()
        .first()
    )

    with httpx.Client(timeout=20.0) as client:
        if existing is not None and existing.grant_id == grant_id:
            try:
                update_event(
                    client,
                    base_url=settings.NYLAS_API_URL,
                    api_key=settings.NYLAS_API_KEY,
                    grant_id=grant_id,
                    event_id=existing.external_event_id,
                    event=event,
                )
                return
            except NylasApiError as e:
                if e.status_code != 404:
                    _raise_for_status(e)
                logger.warning(
                    "calendar_sync: event %s vanished for project %s; recreating",
                    existing.external_event_id,
                    project.id,
                )

        try:
            event_id = create_event(
                client,
                base_url=settings.NYLAS_API_URL,
                api_key=settings.NYLAS_API_KEY,
                grant_id=grant_id,
                event=event,
            )
        except NylasApiError as e:
            _raise_for_status(e)

    if existing is None:
        existing = CalendarEvent(project_id=project.id)
        session.add(existing)
    elif existing.grant_id != grant_id:
        # The old grant still holds its copy of the shoot.
        enqueue_job(
            session=session,
            job_type=JobType.calendar_remove,
            organization_id=project.organization_id,
            payload={
                "project_id": str(project.id),
                "grant_id": existing.grant_id,
                "external_event_id": existing.external_event_id,
            },
            dedupe_key=None,
        )
    existing.user_id = technician.id
    existing.grant_id = grant_id
    existing.external_event_id = event_id
    session.flush()
    logger.info("calendar_sync: event %s synced for project %s", event_id, project.id)


def _raise_for_status(e: NylasApiError) -> NoReturn:
    # 4xx other than rate limiting will not succeed on retry.
    if 400 <= e.status_code < 500 and e.status_code != 429:
        raise PermanentJobError(str(e)) from e
    raise e


def _build_event_input(*, session: Session, project: Project) -> CalendarEventInput:
    settings = get_settings()
    org = session.get(Organization, project.organization_id)
    customer = (
        session.get(OrganizationCustomer, project.customer_id) if project.customer_id else None
    )
    address = project_address(project)

    lines = [f"Organization: {org.name if org else '-'}"]
    if customer is not None:
        lines.append(f"Customer: {customer.name}")
    if project.notes:
        lines.append(project.notes)

    assert project.scheduled_time is not None
    return CalendarEventInput(
        title=f"Shoot: {address}",
        description="\n".join(lines),
        location=address,
        start_time=project.scheduled_time,
        end_time=project.scheduled_time
        + timedelta(minutes=settings.CALENDAR_EVENT_DURATION_MINUTES),
        metadata={
            "mediaops_project_id": str(project.id),
            "mediaops_org_id": str(project.organization_id),
        },
    )
