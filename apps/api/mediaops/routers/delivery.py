from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from mediaops.core.deps import SessionAuth, optional_session, require_csrf_header, require_session
from mediaops.db.session import get_session
from mediaops.routers.projects import artifact_out
from mediaops.schemas.delivery import (
    ApprovalResponse,
    ChangeRequest,
    ChangeRequestResponse,
    CommentCreateRequest,
    DeliveryCustomerOut,
    DeliveryOrganizationOut,
    DeliveryProjectOut,
    DeliveryResponse,
)
from mediaops.schemas.projects import ArtifactOut, ArtifactRequest, MediaOut, MessageOut
from mediaops.services.artifacts import get_artifact_download
from mediaops.services.delivery import (
    add_comment,
    approve_delivery,
    get_delivery,
    get_delivery_artifact,
    list_comments,
    request_changes,
    request_delivery_artifact,
)

router = APIRouter(
    prefix="/delivery/{token}", tags=["delivery"], dependencies=[Depends(require_csrf_header)]
)


@router.get("", response_model=DeliveryResponse)
def delivery_get(
    token: str,
    auth: SessionAuth | None = Depends(optional_session),
    session: Session = Depends(get_session),
) -> DeliveryResponse:
    view = get_delivery(session=session, token=token, viewer=auth[1] if auth else None)
    return DeliveryResponse(
        project=DeliveryProjectOut.model_validate(view.project),
        organization=DeliveryOrganizationOut.model_validate(view.organization),
        customer=DeliveryCustomerOut.model_validate(view.customer) if view.customer else None,
        media=[MediaOut.model_validate(m) for m in view.media],
        comments=[MessageOut.model_validate(c) for c in view.comments],
        can_approve=view.can_approve,
    )


@router.get("/comments", response_model=list[MessageOut])
def delivery_comments(token: str, session: Session = Depends(get_session)) -> list[MessageOut]:
    return list_comments(session=session, token=token)


@router.post("/comments", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
def delivery_comment_create(
    token: str,
    payload: CommentCreateRequest,
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> MessageOut:
    _auth_session, user = auth
    message = add_comment(session=session, token=token, user=user, content=payload.content)
    session.commit()
    return message


@router.post("/approve", response_model=ApprovalResponse)
def delivery_approve(
    token: str,
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> ApprovalResponse:
    _auth_session, user = auth
    project = approve_delivery(session=session, token=token, user=user)
    session.commit()
    return ApprovalResponse(
        client_approval_status=project.client_approval_status,
        client_approved_at=project.client_approved_at,
    )


@router.post("/request-changes", response_model=ChangeRequestResponse)
def delivery_request_changes(
    token: str,
    payload: ChangeRequest,
    auth: SessionAuth = Depends(require_session),
    session: Session = Depends(get_session),
) -> ChangeRequestResponse:
    _auth_session, user = auth
    project, message = request_changes(
        session=session, token=token, user=user, feedback=payload.feedback
    )
    session.commit()
    return ChangeRequestResponse(
        client_approval_status=project.client_approval_status,
        message=MessageOut.model_validate(message),
    )


@router.post("/artifacts", response_model=ArtifactOut, status_code=status.HTTP_202_ACCEPTED)
def delivery_artifact_request(
    token: str,
    payload: ArtifactRequest,
    auth: SessionAuth | None = Depends(optional_session),
    session: Session = Depends(get_session),
) -> ArtifactOut:
    artifact = request_delivery_artifact(
        session=session,
        token=token,
        user=auth[1] if auth else None,
        artifact_type=payload.type,
    )
    session.commit()
    return artifact_out(artifact)


@router.get("/artifacts/{artifact_id}", response_model=ArtifactOut)
def delivery_artifact_status(
    token: str, artifact_id: UUID, session: Session = Depends(get_session)
) -> ArtifactOut:
    return artifact_out(get_delivery_artifact(session=session, token=token, artifact_id=artifact_id))


@router.get("/artifacts/{artifact_id}/download")
def delivery_artifact_download(
    token: str, artifact_id: UUID, session: Session = Depends(get_session)
) -> Response:
    artifact = get_delivery_artifact(session=session, token=token, artifact_id=artifact_id)
    download = get_artifact_download(artifact)
    if download.redirect_url:
        return RedirectResponse(
            url=download.redirect_url, status_code=status.HTTP_307_TEMPORARY_REDIRECT
        )
    assert download.bytes_data is not None
    return Response(
        content=download.bytes_data,
        media_type=download.content_type,
        headers={"content-disposition": download.content_disposition},
    )
