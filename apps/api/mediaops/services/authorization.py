"""Authorization predicates.

Every function here is pure: it looks only at its arguments, never at the
database, and never mutates anything. Callers load whatever rows they need
first and translate a False into a 403.
"""

from __future__ import annotations

from uuid import UUID

from mediaops.core.deps import OrgContext
from mediaops.models.enums import EffectiveRole, OrgRole, OrgType, ProjectChatChannel
from mediaops.models.identity import User
from mediaops.models.projects import Project

# Unrestricted within their org: may edit any project, delete, change customers.
ADMIN_ROLES = frozenset(
    {EffectiveRole.PERSONAL_OWNER, EffectiveRole.OWNER, EffectiveRole.ADMIN}
)
MANAGER_ROLES = ADMIN_ROLES | {EffectiveRole.PROJECT_MANAGER}
_TEAM_ADMIN_ROLES = frozenset({EffectiveRole.OWNER, EffectiveRole.ADMIN})
_NON_PERSONAL_MANAGER_ROLES = frozenset(
    {EffectiveRole.OWNER, EffectiveRole.ADMIN, EffectiveRole.PROJECT_MANAGER}
)


def _in_org(ctx: OrgContext, project: Project) -> bool:
    return project.organization_id == ctx.organization.id


def _personal_or(ctx: OrgContext, allowed: frozenset[EffectiveRole]) -> bool:
    if ctx.is_personal_org:
        return ctx.effective_role == EffectiveRole.PERSONAL_OWNER
    return ctx.effective_role in allowed


# Organization


def can_manage_org_settings(ctx: OrgContext) -> bool:
    return _personal_or(ctx, _TEAM_ADMIN_ROLES)


def can_manage_team_members(ctx: OrgContext) -> bool:
    return _personal_or(ctx, _TEAM_ADMIN_ROLES)


def can_create_organization(org_type: OrgType) -> bool:
    # Personal organizations are provisioned at registration only.
    return org_type != OrgType.PERSONAL


def can_change_member_role(
    ctx: OrgContext, *, current_role: OrgRole, new_role: OrgRole
) -> bool:
    if not can_manage_team_members(ctx):
        return False
    if ctx.is_personal_org:
        # The personal owner is the only member and stays the owner.
        return False
    match ctx.effective_role:
        case EffectiveRole.OWNER:
            return True
        case EffectiveRole.ADMIN:
            return current_role != OrgRole.OWNER and new_role != OrgRole.OWNER
        case _:
            return False


def can_remove_member(ctx: OrgContext, *, target_role: OrgRole) -> bool:
    if not can_manage_team_members(ctx) or ctx.is_personal_org:
        return False
    return target_role != OrgRole.OWNER


# Customers and inquiries


def can_manage_customers(ctx: OrgContext) -> bool:
    return _personal_or(ctx, _NON_PERSONAL_MANAGER_ROLES)


def can_manage_inquiries(ctx: OrgContext) -> bool:
    return _personal_or(ctx, _NON_PERSONAL_MANAGER_ROLES)


def can_convert_inquiry(ctx: OrgContext) -> bool:
    return _personal_or(ctx, _NON_PERSONAL_MANAGER_ROLES)


# Projects


def can_create_project(ctx: OrgContext) -> bool:
    return _personal_or(ctx, _NON_PERSONAL_MANAGER_ROLES)


def can_view_project(ctx: OrgContext, project: Project) -> bool:
    if not _in_org(ctx, project):
        return False
    if ctx.is_personal_org:
        return ctx.effective_role == EffectiveRole.PERSONAL_OWNER
    return ctx.effective_role != EffectiveRole.NONE


def can_manage_project(ctx: OrgContext, user: User, project: Project) -> bool:
    if not _in_org(ctx, project):
        return False
    match ctx.effective_role:
        case EffectiveRole.PERSONAL_OWNER | EffectiveRole.OWNER | EffectiveRole.ADMIN:
            return True
        case EffectiveRole.PROJECT_MANAGER:
            # PMs are scoped to the projects they were assigned.
            return project.project_manager_id == user.id
        case (
            EffectiveRole.TECHNICIAN
            | EffectiveRole.EDITOR
            | EffectiveRole.AGENT
            | EffectiveRole.NONE
        ):
            return False


def can_delete_project(ctx: OrgContext, project: Project) -> bool:
    return _in_org(ctx, project) and ctx.effective_role in ADMIN_ROLES


def can_change_project_customer(ctx: OrgContext, project: Project) -> bool:
    return _in_org(ctx, project) and ctx.effective_role in ADMIN_ROLES


def _is_assigned_worker(ctx: OrgContext, user: User, project: Project) -> bool:
    match ctx.effective_role:
        case EffectiveRole.TECHNICIAN:
            return project.technician_id == user.id
        case EffectiveRole.EDITOR:
            return project.editor_id == user.id
        case _:
            return False


def can_update_own_work(ctx: OrgContext, user: User, project: Project) -> bool:
    if not _in_org(ctx, project):
        return False
    return can_manage_project(ctx, user, project) or _is_assigned_worker(ctx, user, project)


def can_upload_media(ctx: OrgContext, user: User, project: Project) -> bool:
    if not _in_org(ctx, project):
        return False
    if ctx.effective_role in MANAGER_ROLES:
        return True
    return _is_assigned_worker(ctx, user, project)


# Messaging


def can_post_message(
    ctx: OrgContext, user: User, project: Project, channel: ProjectChatChannel
) -> bool:
    if not _in_org(ctx, project):
        return False
    if ctx.is_personal_org:
        return ctx.effective_role == EffectiveRole.PERSONAL_OWNER
    match channel:
        case ProjectChatChannel.TEAM:
            return ctx.effective_role != EffectiveRole.NONE
        case ProjectChatChannel.CUSTOMER:
            return ctx.effective_role in MANAGER_ROLES


def can_read_team_chat(ctx: OrgContext, user: User, project: Project) -> bool:
    if not can_view_project(ctx, project):
        return False
    if ctx.effective_role in (EffectiveRole.TECHNICIAN, EffectiveRole.EDITOR):
        return _is_assigned_worker(ctx, user, project)
    return True


def can_read_customer_chat(
    ctx: OrgContext, user: User, project: Project, *, customer_user_id: UUID | None
) -> bool:
    if customer_user_id is not None and customer_user_id == user.id:
        return True
    return _in_org(ctx, project) and ctx.effective_role in MANAGER_ROLES


def can_read_chat(
    ctx: OrgContext,
    user: User,
    project: Project,
    channel: ProjectChatChannel,
    *,
    customer_user_id: UUID | None,
) -> bool:
    if channel == ProjectChatChannel.CUSTOMER:
        return can_read_customer_chat(ctx, user, project, customer_user_id=customer_user_id)
    return can_read_team_chat(ctx, user, project)
