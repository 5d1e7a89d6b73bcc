from __future__ import annotations

from uuid import UUID

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from helpers import Actor, create_company, create_project, join, login
from mediaops.main import create_app
from mediaops.models.enums import JobType, NotificationType
from mediaops.models.jobs import BgJob
from mediaops.models.notifications import Notification

pytestmark = pytest.mark.usefixtures("_test_database")

MONDAY_AFTERNOON = "2030-01-07T15:00:00Z"
SATURDAY_AFTERNOON = "2030-01-05T15:00:00Z"


def _count_jobs(db: Session, *, project_id: str, job_type: JobType) -> int:
    return db.execute(
        select(func.count())
        .select_from(BgJob)
        .where(BgJob.type == job_type, BgJob.payload["project_id"].astext == project_id)
    ).scalar_one()


def _count_notifications(db: Session, *, user_id: str, notification_type: NotificationType) -> int:
    return db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == UUID(user_id), Notification.type == notification_type)
    ).scalar_one()


def _team(app) -> dict[str, Actor]:
    owner = login(app, prefix="owner")
    create_company(owner)
    team = {"owner": owner}
    for role in ("ADMIN", "PROJECT_MANAGER", "TECHNICIAN", "EDITOR"):
        member = login(app, prefix=role.lower())
        join(owner, member, role=role)
        team[role.lower()] = member
    return team


def _linked_customer(owner: Actor, agent: Actor) -> str:
    res = owner.post(
        "/customers",
        json={"name": "Jamie Realtor", "email": agent.email, "user_id": agent.user_id},
    )
    assert res.status_code == 201, res.text
    return res.json()["id"]


def test_create_requires_manager_role() -> None:
    team = _team(create_app())
    assert team["technician"].post("/projects", json={"address_line1": "x"}).status_code == 403

    created = create_project(team["project_manager"])
    # A project manager who creates a project manages it.
    assert created["project_manager_id"] == team["project_manager"].user_id
    assert created["status"] == "BOOKED"


def test_list_scoping_per_role() -> None:
    app = create_app()
    team = _team(app)
    owner = team["owner"]

    p_tech = create_project(owner, address_line1="1 Tech Way")
    p_edit = create_project(owner, address_line1="2 Edit Way")
    p_pm = create_project(owner, address_line1="3 PM Way")
    create_project(owner, address_line1="4 Nobody Way")

    owner.post(f"/projects/{p_tech['id']}/assign/technician", json={"user_id": team["technician"].user_id})
    owner.post(f"/projects/{p_edit['id']}/assign/editor", json={"user_id": team["editor"].user_id})
    owner.post(
        f"/projects/{p_pm['id']}/assign/project-manager",
        json={"user_id": team["project_manager"].user_id},
    )
    # PMs also see projects they are crewed on.
    owner.post(
        f"/projects/{p_tech['id']}/assign/editor", json={"user_id": team["project_manager"].user_id}
    )

    def ids(actor: Actor) -> set[str]:
        res = actor.get("/projects")
        assert res.status_code == 200, res.text
        return {p["id"] for p in res.json()}

    assert len(ids(owner)) == 4
    assert len(ids(team["admin"])) == 4
    assert ids(team["technician"]) == {p_tech["id"]}
    assert ids(team["editor"]) == {p_edit["id"]}
    assert ids(team["project_manager"]) == {p_pm["id"], p_tech["id"]}


def test_non_member_listing_is_forbidden_unless_agent() -> None:
    app = create_app()
    owner = login(app, prefix="owner")
    org_id = create_company(owner)
    outsider = login(app, prefix="outsider")

    assert outsider.get("/projects", org_id=org_id).status_code == 403

    agent = login(app, prefix="agent", account_type="AGENT")
    customer_id = _linked_customer(owner, agent)
    mine = create_project(owner, customer_id=customer_id)
    create_project(owner)

    res = agent.get("/projects", org_id=org_id)
    assert res.status_code == 200
    assert [p["id"] for p in res.json()] == [mine["id"]]


def test_agent_personal_org_lists_linked_projects_across_orgs() -> None:
    app = create_app()
    agent = login(app, prefix="agent", account_type="AGENT")

    first = login(app, prefix="owner1")
    create_company(first, name="First Media")
    second = login(app, prefix="owner2")
    create_company(second, name="Second Media")

    a = create_project(first, customer_id=_linked_customer(first, agent))
    b = create_project(second, customer_id=_linked_customer(second, agent))
    create_project(second)

    res = agent.get("/projects")
    assert res.status_code == 200
    assert {p["id"] for p in res.json()} == {a["id"], b["id"]}

    # The linked agent can open the project from their own workspace.
    assert agent.get(f"/projects/{a['id']}").status_code == 200
    assert agent.get(f"/projects/{a['id']}/messages", params={"channel": "CUSTOMER"}).status_code == 200
    assert agent.get(f"/projects/{a['id']}/messages", params={"channel": "TEAM"}).status_code == 403


def test_status_machine_for_assigned_worker(db_session: Session) -> None:
    app = create_app()
    team = _team(app)
    owner, tech, editor = team["owner"], team["technician"], team["editor"]

    project = create_project(owner)
    pid = project["id"]
    owner.post(f"/projects/{pid}/assign/technician", json={"user_id": tech.user_id})
    owner.post(f"/projects/{pid}/assign/editor", json={"user_id": editor.user_id})

    # Unassigned editor may not start the shoot; the technician may.
    other_editor = login(app, prefix="editor2")
    join(owner, other_editor, role="EDITOR")
    assert other_editor.patch(f"/projects/{pid}/status", json={"status": "SHOOTING"}).status_code == 403

    res = tech.patch(f"/projects/{pid}/status", json={"status": "SHOOTING"})
    assert res.status_code == 200
    assert res.json()["status"] == "SHOOTING"

    res = editor.patch(f"/projects/{pid}/status", json={"status": "EDITING"})
    assert res.status_code == 200

    # Workers can't deliver, cancel or move backwards.
    assert editor.patch(f"/projects/{pid}/status", json={"status": "DELIVERED"}).status_code == 403
    assert tech.patch(f"/projects/{pid}/status", json={"status": "BOOKED"}).status_code == 403
    assert tech.patch(f"/projects/{pid}/status", json={"status": "CANCELLED"}).status_code == 403

    delivered = owner.patch(f"/projects/{pid}/status", json={"status": "DELIVERED"})
    assert delivered.status_code == 200
    body = delivered.json()
    assert body["status"] == "DELIVERED"
    assert body["delivery_token"]
    assert body["delivery_enabled_at"] is not None

    # Repeating the same status changes nothing.
    again = owner.patch(f"/projects/{pid}/status", json={"status": "DELIVERED"})
    assert again.json()["delivery_token"] == body["delivery_token"]


def test_manager_can_move_any_direction() -> None:
    team = _team(create_app())
    owner = team["owner"]
    pid = create_project(owner)["id"]

    for status in ("EDITING", "BOOKED", "CANCELLED", "BOOKED"):
        res = owner.patch(f"/projects/{pid}/status", json={"status": status})
        assert res.status_code == 200
        assert res.json()["status"] == status


def test_delivery_enqueues_email_for_customer_with_email(db_session: Session) -> None:
    app = create_app()
    owner = login(app, prefix="owner")
    create_company(owner)
    customer = owner.post("/customers", json={"name": "Pat", "email": "pat@example.com"}).json()
    pid = create_project(owner, customer_id=customer["id"])["id"]

    assert owner.patch(f"/projects/{pid}/status", json={"status": "DELIVERED"}).status_code == 200
    assert _count_jobs(db_session, project_id=pid, job_type=JobType.delivery_email) == 1

    # Disable then re-enable keeps the link and emails again.
    token = owner.get(f"/projects/{pid}").json()["delivery_token"]
    disabled = owner.post(f"/projects/{pid}/delivery/disable")
    assert disabled.json()["delivery_enabled_at"] is None
    enabled = owner.post(f"/projects/{pid}/delivery/enable")
    assert enabled.json()["delivery_token"] == token
    assert _count_jobs(db_session, project_id=pid, job_type=JobType.delivery_email) == 2

    rotated = owner.post(f"/projects/{pid}/delivery/regenerate-token")
    assert rotated.status_code == 200
    assert rotated.json()["delivery_token"] != token


def test_reassigning_same_technician_is_a_no_op(db_session: Session) -> None:
    app = create_app()
    team = _team(app)
    owner, tech = team["owner"], team["technician"]
    pid = create_project(owner, scheduled_time=MONDAY_AFTERNOON)["id"]

    first = owner.post(f"/projects/{pid}/assign/technician", json={"user_id": tech.user_id})
    assert first.status_code == 200
    assert first.json()["changed"] is True
    assert first.json()["warning"] is None

    second = owner.post(f"/projects/{pid}/assign/technician", json={"user_id": tech.user_id})
    assert second.status_code == 200
    assert second.json()["changed"] is False

    db_session.expire_all()
    assert (
        _count_notifications(db_session, user_id=tech.user_id, notification_type=NotificationType.PROJECT_ASSIGNED)
        == 1
    )
    assert _count_jobs(db_session, project_id=pid, job_type=JobType.calendar_sync) == 1

    cleared = owner.post(f"/projects/{pid}/assign/technician", json={"user_id": None})
    assert cleared.json()["project"]["technician_id"] is None


def test_unavailable_technician_warns_or_is_declined() -> None:
    app = create_app()
    team = _team(app)
    owner, tech = team["owner"], team["technician"]

    weekend = create_project(owner, scheduled_time=SATURDAY_AFTERNOON)["id"]
    res = owner.post(f"/projects/{weekend}/assign/technician", json={"user_id": tech.user_id})
    assert res.status_code == 200
    assert "saturday" in res.json()["warning"]

    updated = tech.patch(
        "/availability/status",
        json={"is_available": False, "availability_note": "On leave", "auto_decline_bookings": True},
    )
    assert updated.status_code == 200

    weekday = create_project(owner, scheduled_time=MONDAY_AFTERNOON)["id"]
    declined = owner.post(f"/projects/{weekday}/assign/technician", json={"user_id": tech.user_id})
    assert declined.status_code == 409
    assert "On leave" in declined.json()["detail"]


def test_only_admins_change_customer() -> None:
    app = create_app()
    team = _team(app)
    owner, pm = team["owner"], team["project_manager"]
    customer = owner.post("/customers", json={"name": "Sam"}).json()
    pid = create_project(pm)["id"]

    assert (
        pm.post(f"/projects/{pid}/assign/customer", json={"customer_id": customer["id"]}).status_code
        == 403
    )
    ok = owner.post(f"/projects/{pid}/assign/customer", json={"customer_id": customer["id"]})
    assert ok.status_code == 200
    assert ok.json()["project"]["customer_id"] == customer["id"]

    other = login(app, prefix="other")
    create_company(other, name="Other Co")
    foreign = other.post("/customers", json={"name": "Elsewhere"}).json()
    res = owner.post(f"/projects/{pid}/assign/customer", json={"customer_id": foreign["id"]})
    assert res.status_code == 403


def test_pm_manages_only_own_projects() -> None:
    team = _team(create_app())
    owner, pm = team["owner"], team["project_manager"]
    theirs = create_project(owner)["id"]
    mine = create_project(pm)["id"]

    assert pm.patch(f"/projects/{theirs}", json={"notes": "x"}).status_code == 403
    res = pm.patch(f"/projects/{mine}", json={"notes": "gate code 1234"})
    assert res.status_code == 200
    assert res.json()["notes"] == "gate code 1234"

    # Deletion stays with owners and admins.
    assert pm.delete(f"/projects/{mine}").status_code == 403
    assert team["admin"].delete(f"/projects/{mine}").status_code == 204
    assert owner.get(f"/projects/{mine}").status_code == 404


def test_cross_org_access_is_denied() -> None:
    app = create_app()
    owner = login(app, prefix="owner")
    create_company(owner)
    pid = create_project(owner)["id"]

    stranger = login(app, prefix="stranger")
    create_company(stranger, name="Rival Media")
    assert stranger.get(f"/projects/{pid}").status_code == 403
    assert stranger.patch(f"/projects/{pid}/status", json={"status": "CANCELLED"}).status_code == 403
    assert stranger.delete(f"/projects/{pid}").status_code == 403


def test_message_threads_flatten_and_channel_rules() -> None:
    team = _team(create_app())
    owner, tech = team["owner"], team["technician"]
    pid = create_project(owner)["id"]
    owner.post(f"/projects/{pid}/assign/technician", json={"user_id": tech.user_id})

    root = owner.post(f"/projects/{pid}/messages", json={"content": "Lockbox is 4411"})
    assert root.status_code == 201
    reply = tech.post(
        f"/projects/{pid}/messages", json={"content": "Got it", "thread_id": root.json()["id"]}
    )
    assert reply.status_code == 201
    nested = owner.post(
        f"/projects/{pid}/messages", json={"content": "Thanks", "thread_id": reply.json()["id"]}
    )
    assert nested.json()["thread_id"] == root.json()["id"]

    assert (
        tech.post(f"/projects/{pid}/messages", json={"channel": "CUSTOMER", "content": "hi"}).status_code
        == 403
    )
    assert (
        owner.post(
            f"/projects/{pid}/messages",
            json={"channel": "CUSTOMER", "content": "hi", "thread_id": root.json()["id"]},
        ).status_code
        == 400
    )
    assert owner.post(f"/projects/{pid}/messages", json={"content": "   "}).status_code == 422

    team_msgs = tech.get(f"/projects/{pid}/messages", params={"channel": "TEAM"}).json()
    assert [m["content"] for m in team_msgs] == ["Lockbox is 4411", "Got it", "Thanks"]


def test_media_register_and_delete(db_session: Session) -> None:
    team = _team(create_app())
    owner, tech, editor = team["owner"], team["technician"], team["editor"]
    pid = create_project(owner)["id"]
    owner.post(f"/projects/{pid}/assign/technician", json={"user_id": tech.user_id})

    body = {"type": "PHOTO", "filename": "front.jpg", "storage_key": f"media/{pid}/front.jpg", "size_bytes": 10}
    assert editor.post(f"/projects/{pid}/media", json=body).status_code == 403
    created = tech.post(f"/projects/{pid}/media", json=body)
    assert created.status_code == 201

    assert tech.post(f"/projects/{pid}/media", json={"type": "PHOTO", "filename": "x.jpg"}).status_code == 400
    assert len(owner.get(f"/projects/{pid}/media").json()) == 1

    media_id = created.json()["id"]
    assert tech.delete(f"/projects/{pid}/media/{media_id}").status_code == 403
    assert owner.delete(f"/projects/{pid}/media/{media_id}").status_code == 204

    jobs = db_session.execute(
        select(BgJob).where(BgJob.type == JobType.media_blob_delete, BgJob.dedupe_key == f"media:{media_id}")
    ).scalars().all()
    assert len(jobs) == 1
    assert jobs[0].payload == {"storage_key": f"media/{pid}/front.jpg"}
