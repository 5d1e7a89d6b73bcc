from __future__ import annotations

import logging
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from mediaops.core.config import get_settings
from mediaops.models.identity import Organization
from mediaops.models.projects import Project
from mediaops.services.notifications import project_address
from mediaops.services.resend import ResendApiError, render_delivery_email, send_email
from mediaops.worker.errors import PermanentJobError

logger = logging.getLogger("mediaops.worker")


def delivery_email(*, session: Session, payload: dict) -> None:
    project_id_raw = payload.get("project_id")
    to_email = payload.get("to_email")
    if not project_id_raw or not to_email:
        raise PermanentJobError("delivery_email payload missing project_id or to_email")

    project = session.get(Project, UUID(str(project_id_raw)))
    if project is None:
        logger.info("delivery_email: project %s no longer exists", project_id_raw)
        return
    if project.delivery_enabled_at is None or not project.delivery_token:
        # Delivery was disabled again before the email went out.
        logger.info("delivery_email: delivery disabled for project %s; skipping", project.id)
        return

    settings = get_settings()
    if not settings.RESEND_API_KEY:
        logger.info("delivery_email: email not configured; skipping project %s", project.id)
        return

    org = session.get(Organization, project.organization_id)
    subject, html = render_delivery_email(
        to_name=payload.get("to_name"),
        organization_name=org.name if org else "Your media team",
        address=project_address(project),
        delivery_url=f"{settings.FRONTEND_URL.rstrip('/')}/delivery/{project.delivery_token}",
    )

    with httpx.Client(timeout=20.0) as client:
        try:
            email_id = send_email(
                client,
                base_url=settings.RESEND_API_URL,
                api_key=settings.RESEND_API_KEY,
                from_email=settings.EMAIL_FROM,
                to_email=str(to_email),
                subject=subject,
                html=html,
            )
        except ResendApiError as e:
            if 400 <= e.status_code < 500 and e.status_code != 429:
                raise PermanentJobError(str(e)) from e
            raise

    logger.info("delivery_email: sent %s for project %s", email_id, project.id)
