from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mediaops.core.config import get_settings
from mediaops.core.deps import OrgContext
from mediaops.models.artifacts import DownloadArtifact
from mediaops.models.enums import DownloadArtifactStatus, DownloadArtifactType
from mediaops.models.projects import Media, Project
from mediaops.services import authorization as authz
from mediaops.services.audit import log_event
from mediaops.services.projects import get_project, get_project_for_viewer
from mediaops.storage.base import BlobStoreError, build_attachment_disposition
from mediaops.storage.factory import build_blob_store

ZIP_CONTENT_TYPE = "application/zip"


@dataclass(frozen=True)
class ArtifactDownload:
    bytes_data: bytes | None
    content_type: str
    content_disposition: str
    redirect_url: str | None


def _latest_media_at(session: Session, project_id: UUID) -> datetime | None:
    return session.execute(
        select(func.max(Media.created_at)).where(Media.project_id == project_id)
    ).scalar_one()


def request_artifact(
    *,
    session: Session,
    project: Project,
    requested_by_id: UUID | None,
    artifact_type: DownloadArtifactType,
) -> DownloadArtifact:
    """Return an in-flight or still-current artifact of this type, or queue a new one."""
    # Requests for the same project queue here, so the lookup below sees the winner's row.
    get_project(session=session, project_id=project.id, for_update=True)
    candidates = session.execute(
        select(DownloadArtifact)
        .where(
            DownloadArtifact.project_id == project.id,
            DownloadArtifact.type == artifact_type,
            DownloadArtifact.status != DownloadArtifactStatus.FAILED,
        )
        .order_by(DownloadArtifact.created_at.desc())
        .limit(1)
    ).scalars()
    latest = candidates.first()
    if latest is not None:
        if latest.status in (DownloadArtifactStatus.PENDING, DownloadArtifactStatus.GENERATING):
            return latest
        newest_media = _latest_media_at(session, project.id)
        if newest_media is None or newest_media <= latest.created_at:
            return latest

    artifact = DownloadArtifact(
        project_id=project.id,
        requested_by_id=requested_by_id,
        type=artifact_type,
        status=DownloadArtifactStatus.PENDING,
    )
    session.add(artifact)
    session.flush()
    log_event(
        session=session,
        organization_id=project.organization_id,
        actor_user_id=requested_by_id,
        event_type="artifact.requested",
        event_data={"artifact_id": str(artifact.id), "type": artifact_type.value},
        project_id=project.id,
    )
    return artifact


def request_project_artifact(
    *,
    session: Session,
    ctx: OrgContext,
    project_id: UUID,
    artifact_type: DownloadArtifactType,
) -> DownloadArtifact:
    project = get_project_for_viewer(session=session, ctx=ctx, project_id=project_id)
    return request_artifact(
        session=session, project=project, requested_by_id=ctx.user.id, artifact_type=artifact_type
    )


def get_project_artifact(
    *, session: Session, project_id: UUID, artifact_id: UUID
) -> DownloadArtifact:
    artifact = session.get(DownloadArtifact, artifact_id)
    if artifact is None or artifact.project_id != project_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Artifact not found")
    return artifact


def artifact_download_url(artifact: DownloadArtifact) -> str | None:
    if artifact.status != DownloadArtifactStatus.READY or not artifact.storage_key:
        return None
    return build_blob_store().get_download_url(
        key=artifact.storage_key,
        expires_in_seconds=get_settings().ARTIFACT_DOWNLOAD_URL_TTL_SECONDS,
        filename=artifact.filename,
        content_type=ZIP_CONTENT_TYPE,
    )


def get_artifact_download(artifact: DownloadArtifact) -> ArtifactDownload:
    if artifact.status != DownloadArtifactStatus.READY or not artifact.storage_key:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Artifact is not ready")

    filename = artifact.filename or f"download-{artifact.id}.zip"
    disposition = build_attachment_disposition(filename)
    signed_url = artifact_download_url(artifact)
    if signed_url:
        return ArtifactDownload(
            bytes_data=None,
            content_type=ZIP_CONTENT_TYPE,
            content_disposition=disposition,
            redirect_url=signed_url,
        )

    try:
        payload = build_blob_store().get_bytes(key=artifact.storage_key)
    except BlobStoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Artifact blob unavailable"
        ) from exc
    return ArtifactDownload(
        bytes_data=payload,
        content_type=ZIP_CONTENT_TYPE,
        content_disposition=disposition,
        redirect_url=None,
    )


def retry_artifact(
    *, session: Session, ctx: OrgContext, project_id: UUID, artifact_id: UUID
) -> DownloadArtifact:
    project = get_project(session=session, project_id=project_id)
    if not authz.can_manage_project(ctx, ctx.user, project):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to retry downloads"
        )
    artifact = session.get(DownloadArtifact, artifact_id, with_for_update=True)
    if artifact is None or artifact.project_id != project.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Artifact not found")
    if artifact.status != DownloadArtifactStatus.FAILED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Only failed artifacts can be retried"
        )

    artifact.status = DownloadArtifactStatus.PENDING
    artifact.retry_count = 0
    artifact.error = None
    artifact.worker_token = None
    artifact.processing_started_at = None
    session.add(artifact)
    session.flush()
    log_event(
        session=session,
        organization_id=project.organization_id,
        actor_user_id=ctx.user.id,
        event_type="artifact.retried",
        event_data={"artifact_id": str(artifact.id)},
        project_id=project.id,
    )
    return artifact
