from __future__ import annotations

import uuid
from types import SimpleNamespace

import pytest

from mediaops.core.deps import OrgContext
from mediaops.models.enums import EffectiveRole, OrgRole, OrgType, ProjectChatChannel
from mediaops.services import authorization as authz
from mediaops.services.org_context import compute_effective_role


def _ctx(role: EffectiveRole, *, org_type: OrgType = OrgType.COMPANY, org_id=None):
    org = SimpleNamespace(id=org_id or uuid.uuid4(), type=org_type)
    user = SimpleNamespace(id=uuid.uuid4())
    membership = None if role == EffectiveRole.NONE else SimpleNamespace(role=role)
    return OrgContext(organization=org, membership=membership, effective_role=role, user=user)


def _project(ctx: OrgContext, **assigned):
    return SimpleNamespace(
        id=uuid.uuid4(),
        organization_id=ctx.organization.id,
        technician_id=assigned.get("technician_id"),
        editor_id=assigned.get("editor_id"),
        project_manager_id=assigned.get("project_manager_id"),
    )


@pytest.mark.parametrize(
    ("org_type", "role", "expected"),
    [
        (OrgType.PERSONAL, OrgRole.OWNER, EffectiveRole.PERSONAL_OWNER),
        (OrgType.COMPANY, OrgRole.OWNER, EffectiveRole.OWNER),
        (OrgType.TEAM, OrgRole.ADMIN, EffectiveRole.ADMIN),
        (OrgType.COMPANY, OrgRole.PROJECT_MANAGER, EffectiveRole.PROJECT_MANAGER),
        (OrgType.COMPANY, OrgRole.AGENT, EffectiveRole.AGENT),
    ],
)
def test_compute_effective_role(org_type: OrgType, role: OrgRole, expected: EffectiveRole) -> None:
    membership = SimpleNamespace(role=role)
    assert compute_effective_role(org_type=org_type, membership=membership) == expected


def test_compute_effective_role_without_membership_is_none() -> None:
    assert compute_effective_role(org_type=OrgType.COMPANY, membership=None) == EffectiveRole.NONE
    assert compute_effective_role(org_type=OrgType.PERSONAL, membership=None) == EffectiveRole.NONE


def test_org_admin_predicates() -> None:
    assert authz.can_manage_org_settings(_ctx(EffectiveRole.OWNER))
    assert authz.can_manage_org_settings(_ctx(EffectiveRole.ADMIN))
    assert authz.can_manage_org_settings(
        _ctx(EffectiveRole.PERSONAL_OWNER, org_type=OrgType.PERSONAL)
    )
    assert not authz.can_manage_org_settings(_ctx(EffectiveRole.PROJECT_MANAGER))
    assert not authz.can_manage_team_members(_ctx(EffectiveRole.TECHNICIAN))
    assert not authz.can_manage_team_members(_ctx(EffectiveRole.NONE))


def test_admin_cannot_touch_owner_role() -> None:
    admin = _ctx(EffectiveRole.ADMIN)
    assert authz.can_change_member_role(
        admin, current_role=OrgRole.TECHNICIAN, new_role=OrgRole.EDITOR
    )
    assert not authz.can_change_member_role(
        admin, current_role=OrgRole.TECHNICIAN, new_role=OrgRole.OWNER
    )
    assert not authz.can_change_member_role(
        admin, current_role=OrgRole.OWNER, new_role=OrgRole.ADMIN
    )

    owner = _ctx(EffectiveRole.OWNER)
    assert authz.can_change_member_role(owner, current_role=OrgRole.ADMIN, new_role=OrgRole.OWNER)


def test_personal_org_roles_are_frozen() -> None:
    personal = _ctx(EffectiveRole.PERSONAL_OWNER, org_type=OrgType.PERSONAL)
    assert not authz.can_change_member_role(
        personal, current_role=OrgRole.OWNER, new_role=OrgRole.ADMIN
    )
    assert not authz.can_remove_member(personal, target_role=OrgRole.TECHNICIAN)


def test_owner_cannot_be_removed() -> None:
    assert not authz.can_remove_member(_ctx(EffectiveRole.OWNER), target_role=OrgRole.OWNER)
    assert authz.can_remove_member(_ctx(EffectiveRole.ADMIN), target_role=OrgRole.AGENT)


def test_cannot_create_personal_org() -> None:
    assert not authz.can_create_organization(OrgType.PERSONAL)
    assert authz.can_create_organization(OrgType.TEAM)
    assert authz.can_create_organization(OrgType.COMPANY)


def test_create_project_roles() -> None:
    assert authz.can_create_project(_ctx(EffectiveRole.PROJECT_MANAGER))
    assert authz.can_create_project(_ctx(EffectiveRole.ADMIN))
    assert not authz.can_create_project(_ctx(EffectiveRole.TECHNICIAN))
    assert not authz.can_create_project(_ctx(EffectiveRole.AGENT))


def test_view_requires_same_org() -> None:
    ctx = _ctx(EffectiveRole.TECHNICIAN)
    project = _project(ctx)
    assert authz.can_view_project(ctx, project)

    other = _ctx(EffectiveRole.OWNER)
    assert not authz.can_view_project(other, project)
    assert not authz.can_manage_project(other, other.user, project)
    assert not authz.can_delete_project(other, project)


def test_none_role_cannot_view() -> None:
    ctx = _ctx(EffectiveRole.NONE)
    assert not authz.can_view_project(ctx, _project(ctx))


def test_project_manager_scoped_to_assigned_projects() -> None:
    ctx = _ctx(EffectiveRole.PROJECT_MANAGER)
    mine = _project(ctx, project_manager_id=ctx.user.id)
    theirs = _project(ctx, project_manager_id=uuid.uuid4())

    assert authz.can_manage_project(ctx, ctx.user, mine)
    assert not authz.can_manage_project(ctx, ctx.user, theirs)
    assert not authz.can_delete_project(ctx, mine)
    assert not authz.can_change_project_customer(ctx, mine)


def test_assigned_worker_can_update_own_work_only() -> None:
    tech = _ctx(EffectiveRole.TECHNICIAN)
    assigned = _project(tech, technician_id=tech.user.id)
    unassigned = _project(tech, technician_id=uuid.uuid4())

    assert authz.can_update_own_work(tech, tech.user, assigned)
    assert not authz.can_update_own_work(tech, tech.user, unassigned)
    assert not authz.can_manage_project(tech, tech.user, assigned)
    assert authz.can_upload_media(tech, tech.user, assigned)
    assert not authz.can_upload_media(tech, tech.user, unassigned)

    editor = _ctx(EffectiveRole.EDITOR)
    # A technician slot holding the editor's id does not count.
    assert not authz.can_update_own_work(editor, editor.user, _project(editor, technician_id=editor.user.id))
    assert authz.can_update_own_work(editor, editor.user, _project(editor, editor_id=editor.user.id))


def test_team_chat_read_limited_for_workers() -> None:
    tech = _ctx(EffectiveRole.TECHNICIAN)
    assert authz.can_read_team_chat(tech, tech.user, _project(tech, technician_id=tech.user.id))
    assert not authz.can_read_team_chat(tech, tech.user, _project(tech))

    agent = _ctx(EffectiveRole.AGENT)
    assert authz.can_read_team_chat(agent, agent.user, _project(agent))


def test_customer_channel_rules() -> None:
    manager = _ctx(EffectiveRole.PROJECT_MANAGER)
    project = _project(manager)
    assert authz.can_post_message(manager, manager.user, project, ProjectChatChannel.CUSTOMER)
    assert authz.can_read_customer_chat(manager, manager.user, project, customer_user_id=None)

    tech = _ctx(EffectiveRole.TECHNICIAN, org_id=manager.organization.id)
    assert authz.can_post_message(tech, tech.user, project, ProjectChatChannel.TEAM)
    assert not authz.can_post_message(tech, tech.user, project, ProjectChatChannel.CUSTOMER)
    assert not authz.can_read_customer_chat(tech, tech.user, project, customer_user_id=None)


def test_linked_customer_reads_customer_chat_from_any_org() -> None:
    owner = _ctx(EffectiveRole.OWNER)
    project = _project(owner)
    agent_home = _ctx(EffectiveRole.PERSONAL_OWNER, org_type=OrgType.PERSONAL)

    assert authz.can_read_chat(
        agent_home,
        agent_home.user,
        project,
        ProjectChatChannel.CUSTOMER,
        customer_user_id=agent_home.user.id,
    )
    assert not authz.can_read_chat(
        agent_home,
        agent_home.user,
        project,
        ProjectChatChannel.TEAM,
        customer_user_id=agent_home.user.id,
    )
