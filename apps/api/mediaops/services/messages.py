from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from mediaops.core.deps import OrgContext
from mediaops.db.session import best_effort_savepoint
from mediaops.models.enums import ProjectChatChannel
from mediaops.models.projects import Project, ProjectMessage
from mediaops.services import authorization as authz
from mediaops.services.notifications import create_message_notifications
from mediaops.services.projects import customer_user_id, get_project

MAX_CONTENT_CHARS = 10_000


def _clean_content(content: str) -> str:
    text = content.strip()
    if not text:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Message cannot be empty"
        )
    if len(text) > MAX_CONTENT_CHARS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Message is too long"
        )
    return text


def _resolve_thread(
    session: Session, *, project: Project, channel: ProjectChatChannel, thread_id: UUID | None
) -> UUID | None:
    if thread_id is None:
        return None
    parent = session.get(ProjectMessage, thread_id)
    if parent is None or parent.project_id != project.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thread not found")
    if parent.channel != channel:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Thread belongs to a different channel"
        )
    # Replies to a reply attach to the top-level message.
    return parent.thread_id or parent.id


def add_message(
    *,
    session: Session,
    project: Project,
    user_id: UUID,
    channel: ProjectChatChannel,
    content: str,
    thread_id: UUID | None = None,
) -> ProjectMessage:
    """Append a message; callers have already authorized the sender."""
    message = ProjectMessage(
        project_id=project.id,
        user_id=user_id,
        channel=channel,
        thread_id=_resolve_thread(session, project=project, channel=channel, thread_id=thread_id),
        content=_clean_content(content),
    )
    session.add(message)
    session.flush()

    with best_effort_savepoint(session, what="message notifications", project_id=project.id):
        create_message_notifications(
            session=session,
            sender_id=user_id,
            project=project,
            channel=channel,
            message_id=message.id,
            preview=message.content,
        )
    return message


def post_message(
    *,
    session: Session,
    ctx: OrgContext,
    project_id: UUID,
    channel: ProjectChatChannel,
    content: str,
    thread_id: UUID | None = None,
) -> ProjectMessage:
    project = get_project(session=session, project_id=project_id)
    if not authz.can_post_message(ctx, ctx.user, project, channel):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Not allowed to post in the {channel.value.lower()} channel",
        )
    return add_message(
        session=session,
        project=project,
        user_id=ctx.user.id,
        channel=channel,
        content=content,
        thread_id=thread_id,
    )


def list_messages(
    *, session: Session, ctx: OrgContext, project_id: UUID, channel: ProjectChatChannel
) -> list[ProjectMessage]:
    project = get_project(session=session, project_id=project_id)
    if not authz.can_read_chat(
        ctx, ctx.user, project, channel, customer_user_id=customer_user_id(session, project)
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Not allowed to read the {channel.value.lower()} channel",
        )
    return list_channel_messages(session=session, project_id=project.id, channel=channel)


def list_channel_messages(
    *, session: Session, project_id: UUID, channel: ProjectChatChannel
) -> list[ProjectMessage]:
    return list(
        session.execute(
            select(ProjectMessage)
            .where(ProjectMessage.project_id == project_id, ProjectMessage.channel == channel)
            .order_by(ProjectMessage.created_at.asc(), ProjectMessage.id.asc())
        ).scalars()
    )
