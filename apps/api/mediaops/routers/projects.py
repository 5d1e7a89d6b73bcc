from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from mediaops.core.deps import OrgContext, require_csrf_header, require_member, require_org
from mediaops.db.session import get_session
from mediaops.models.artifacts import DownloadArtifact
from mediaops.models.enums import ProjectChatChannel
from mediaops.schemas.projects import (
    ArtifactOut,
    ArtifactRequest,
    AssignCustomerRequest,
    AssignmentResponse,
    AssignUserRequest,
    MediaCreateRequest,
    MediaOut,
    MessageCreateRequest,
    MessageOut,
    ProjectCreateRequest,
    ProjectOut,
    ProjectUpdateRequest,
    StatusUpdateRequest,
)
from mediaops.services.artifacts import (
    artifact_download_url,
    get_artifact_download,
    get_project_artifact,
    request_project_artifact,
    retry_artifact,
)
from mediaops.services.media import delete_media, list_media, register_media
from mediaops.services.messages import list_messages, post_message
from mediaops.services.projects import (
    AssignmentResult,
    assign_customer,
    assign_editor,
    assign_project_manager,
    assign_technician,
    create_project,
    delete_project,
    disable_delivery,
    enable_delivery,
    get_project_for_viewer,
    list_projects_for_user,
    regenerate_delivery_token,
    update_project,
    update_status,
)

router = APIRouter(prefix="/projects", tags=["projects"], dependencies=[Depends(require_csrf_header)])


def artifact_out(artifact: DownloadArtifact) -> ArtifactOut:
    return ArtifactOut(
        id=artifact.id,
        project_id=artifact.project_id,
        type=artifact.type,
        status=artifact.status,
        retry_count=artifact.retry_count,
        error=artifact.error,
        filename=artifact.filename,
        size_bytes=artifact.size_bytes,
        download_url=artifact_download_url(artifact),
        created_at=artifact.created_at,
        updated_at=artifact.updated_at,
    )


def _assignment_response(result: AssignmentResult) -> AssignmentResponse:
    return AssignmentResponse(
        project=ProjectOut.model_validate(result.project),
        changed=result.changed,
        warning=result.warning,
    )


@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
def projects_create(
    payload: ProjectCreateRequest,
    org: OrgContext = Depends(require_member),
    session: Session = Depends(get_session),
) -> ProjectOut:
    project = create_project(session=session, ctx=org, data=payload.model_dump())
    session.commit()
    return project


@router.get("", response_model=list[ProjectOut])
def projects_list(
    org: OrgContext = Depends(require_org), session: Session = Depends(get_session)
) -> list[ProjectOut]:
    return list_projects_for_user(session=session, ctx=org)


@router.get("/{project_id}", response_model=ProjectOut)
def projects_get(
    project_id: UUID,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> ProjectOut:
    return get_project_for_viewer(session=session, ctx=org, project_id=project_id)


@router.patch("/{project_id}", response_model=ProjectOut)
def projects_update(
    project_id: UUID,
    payload: ProjectUpdateRequest,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> ProjectOut:
    project = update_project(
        session=session,
        ctx=org,
        project_id=project_id,
        updates=payload.model_dump(exclude_unset=True),
    )
    session.commit()
    return project


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def projects_delete(
    project_id: UUID,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> Response:
    delete_project(session=session, ctx=org, project_id=project_id)
    session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{project_id}/assign/technician", response_model=AssignmentResponse)
def projects_assign_technician(
    project_id: UUID,
    payload: AssignUserRequest,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> AssignmentResponse:
    result = assign_technician(
        session=session, ctx=org, project_id=project_id, technician_id=payload.user_id
    )
    session.commit()
    return _assignment_response(result)


@router.post("/{project_id}/assign/editor", response_model=AssignmentResponse)
def projects_assign_editor(
    project_id: UUID,
    payload: AssignUserRequest,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> AssignmentResponse:
    result = assign_editor(session=session, ctx=org, project_id=project_id, editor_id=payload.user_id)
    session.commit()
    return _assignment_response(result)


@router.post("/{project_id}/assign/project-manager", response_model=AssignmentResponse)
def projects_assign_project_manager(
    project_id: UUID,
    payload: AssignUserRequest,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> AssignmentResponse:
    result = assign_project_manager(
        session=session, ctx=org, project_id=project_id, project_manager_id=payload.user_id
    )
    session.commit()
    return _assignment_response(result)


@router.post("/{project_id}/assign/customer", response_model=AssignmentResponse)
def projects_assign_customer(
    project_id: UUID,
    payload: AssignCustomerRequest,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> AssignmentResponse:
    result = assign_customer(
        session=session, ctx=org, project_id=project_id, customer_id=payload.customer_id
    )
    session.commit()
    return _assignment_response(result)


@router.patch("/{project_id}/status", response_model=ProjectOut)
def projects_status(
    project_id: UUID,
    payload: StatusUpdateRequest,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> ProjectOut:
    project = update_status(
        session=session, ctx=org, project_id=project_id, new_status=payload.status
    )
    session.commit()
    return project


@router.post("/{project_id}/delivery/enable", response_model=ProjectOut)
def projects_delivery_enable(
    project_id: UUID,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> ProjectOut:
    project = enable_delivery(session=session, ctx=org, project_id=project_id)
    session.commit()
    return project


@router.post("/{project_id}/delivery/disable", response_model=ProjectOut)
def projects_delivery_disable(
    project_id: UUID,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> ProjectOut:
    project = disable_delivery(session=session, ctx=org, project_id=project_id)
    session.commit()
    return project


@router.post("/{project_id}/delivery/regenerate-token", response_model=ProjectOut)
def projects_delivery_regenerate(
    project_id: UUID,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> ProjectOut:
    project = regenerate_delivery_token(session=session, ctx=org, project_id=project_id)
    session.commit()
    return project


@router.get("/{project_id}/messages", response_model=list[MessageOut])
def projects_messages(
    project_id: UUID,
    channel: ProjectChatChannel = Query(default=ProjectChatChannel.TEAM),
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> list[MessageOut]:
    return list_messages(session=session, ctx=org, project_id=project_id, channel=channel)


@router.post(
    "/{project_id}/messages", response_model=MessageOut, status_code=status.HTTP_201_CREATED
)
def projects_message_create(
    project_id: UUID,
    payload: MessageCreateRequest,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> MessageOut:
    message = post_message(
        session=session,
        ctx=org,
        project_id=project_id,
        channel=payload.channel,
        content=payload.content,
        thread_id=payload.thread_id,
    )
    session.commit()
    return message


@router.get("/{project_id}/media", response_model=list[MediaOut])
def projects_media(
    project_id: UUID,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> list[MediaOut]:
    return list_media(session=session, ctx=org, project_id=project_id)


@router.post("/{project_id}/media", response_model=MediaOut, status_code=status.HTTP_201_CREATED)
def projects_media_create(
    project_id: UUID,
    payload: MediaCreateRequest,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> MediaOut:
    media = register_media(
        session=session,
        ctx=org,
        project_id=project_id,
        media_type=payload.type,
        filename=payload.filename,
        storage_key=payload.storage_key,
        cdn_url=payload.cdn_url,
        size_bytes=payload.size_bytes,
    )
    session.commit()
    return media


@router.delete("/{project_id}/media/{media_id}", status_code=status.HTTP_204_NO_CONTENT)
def projects_media_delete(
    project_id: UUID,
    media_id: UUID,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> Response:
    delete_media(session=session, ctx=org, project_id=project_id, media_id=media_id)
    session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{project_id}/artifacts", response_model=ArtifactOut, status_code=status.HTTP_202_ACCEPTED
)
def projects_artifact_request(
    project_id: UUID,
    payload: ArtifactRequest,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> ArtifactOut:
    artifact = request_project_artifact(
        session=session, ctx=org, project_id=project_id, artifact_type=payload.type
    )
    session.commit()
    return artifact_out(artifact)


@router.get("/{project_id}/artifacts/{artifact_id}", response_model=ArtifactOut)
def projects_artifact_status(
    project_id: UUID,
    artifact_id: UUID,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> ArtifactOut:
    project = get_project_for_viewer(session=session, ctx=org, project_id=project_id)
    artifact = get_project_artifact(session=session, project_id=project.id, artifact_id=artifact_id)
    return artifact_out(artifact)


@router.get("/{project_id}/artifacts/{artifact_id}/download")
def projects_artifact_download(
    project_id: UUID,
    artifact_id: UUID,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> Response:
    project = get_project_for_viewer(session=session, ctx=org, project_id=project_id)
    artifact = get_project_artifact(session=session, project_id=project.id, artifact_id=artifact_id)
    download = get_artifact_download(artifact)
    if download.redirect_url:
        return RedirectResponse(
            url=download.redirect_url,
            status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        )
    assert download.bytes_data is not None
    return Response(
        content=download.bytes_data,
        media_type=download.content_type,
        headers={"content-disposition": download.content_disposition},
    )


@router.post("/{project_id}/artifacts/{artifact_id}/retry", response_model=ArtifactOut)
def projects_artifact_retry(
    project_id: UUID,
    artifact_id: UUID,
    org: OrgContext = Depends(require_org),
    session: Session = Depends(get_session),
) -> ArtifactOut:
    artifact = retry_artifact(
        session=session, ctx=org, project_id=project_id, artifact_id=artifact_id
    )
    session.commit()
    return artifact_out(artifact)
