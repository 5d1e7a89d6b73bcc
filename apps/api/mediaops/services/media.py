from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from mediaops.core.deps import OrgContext
from mediaops.models.enums import JobType, MediaType
from mediaops.models.projects import Media
from mediaops.services import authorization as authz
from mediaops.services.audit import log_event
from mediaops.services.projects import get_project, get_project_for_viewer
from mediaops.worker.queue import enqueue_job


def register_media(
    *,
    session: Session,
    ctx: OrgContext,
    project_id: UUID,
    media_type: MediaType,
    filename: str,
    storage_key: str | None,
    cdn_url: str | None,
    size_bytes: int | None,
) -> Media:
    project = get_project(session=session, project_id=project_id)
    if not authz.can_upload_media(ctx, ctx.user, project):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to upload media"
        )
    if not storage_key and not cdn_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="storage_key or cdn_url is required"
        )
    if size_bytes is not None and size_bytes < 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid size")
    name = filename.strip()
    if not name or "/" in name or "\\" in name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid filename")

    media = Media(
        project_id=project.id,
        uploaded_by_id=ctx.user.id,
        type=media_type,
        storage_key=storage_key,
        cdn_url=cdn_url,
        filename=name,
        size_bytes=size_bytes,
    )
    session.add(media)
    session.flush()
    log_event(
        session=session,
        organization_id=project.organization_id,
        actor_user_id=ctx.user.id,
        event_type="media.registered",
        event_data={"media_id": str(media.id), "type": media_type.value},
        project_id=project.id,
    )
    return media


def list_media(*, session: Session, ctx: OrgContext, project_id: UUID) -> list[Media]:
    project = get_project_for_viewer(session=session, ctx=ctx, project_id=project_id)
    return list_project_media(session=session, project_id=project.id)


def list_project_media(*, session: Session, project_id: UUID) -> list[Media]:
    return list(
        session.execute(
            select(Media)
            .where(Media.project_id == project_id)
            .order_by(Media.created_at.desc(), Media.id.desc())
        ).scalars()
    )


def delete_media(*, session: Session, ctx: OrgContext, project_id: UUID, media_id: UUID) -> None:
    project = get_project(session=session, project_id=project_id)
    if not authz.can_manage_project(ctx, ctx.user, project):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to delete media"
        )
    media = session.get(Media, media_id)
    if media is None or media.project_id != project.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media not found")

    if media.storage_key:
        enqueue_job(
            session=session,
            job_type=JobType.media_blob_delete,
            organization_id=project.organization_id,
            payload={"storage_key": media.storage_key},
            dedupe_key=f"media:{media.id}",
        )
    session.delete(media)
    session.flush()
    log_event(
        session=session,
        organization_id=project.organization_id,
        actor_user_id=ctx.user.id,
        event_type="media.deleted",
        event_data={"media_id": str(media_id)},
        project_id=project.id,
    )
