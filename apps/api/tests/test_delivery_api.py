from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select, text
from sqlalchemy.orm import Session

from helpers import Actor, create_company, create_project, get_csrf, join, login
from mediaops.db.session import session_scope
from mediaops.main import create_app
from mediaops.models.enums import NotificationType
from mediaops.models.notifications import Notification

pytestmark = pytest.mark.usefixtures("_test_database")


def _delivered_project(app) -> tuple[Actor, Actor, dict]:
    owner = login(app, prefix="owner")
    create_company(owner, name="Lens & Light")
    agent = login(app, prefix="agent", account_type="AGENT")
    customer = owner.post(
        "/customers", json={"name": "Jamie Realtor", "email": agent.email, "user_id": agent.user_id}
    ).json()
    project = create_project(owner, customer_id=customer["id"])
    owner.post(
        f"/projects/{project['id']}/media",
        json={"type": "PHOTO", "filename": "front.jpg", "cdn_url": "https://cdn.example.com/front.jpg"},
    )
    res = owner.patch(f"/projects/{project['id']}/status", json={"status": "DELIVERED"})
    assert res.status_code == 200, res.text
    return owner, agent, res.json()


def _anonymous(app) -> tuple[TestClient, dict[str, str]]:
    client = TestClient(app)
    return client, {"x-csrf-token": get_csrf(client)}


def test_anonymous_can_view_delivery() -> None:
    app = create_app()
    _owner, _agent, project = _delivered_project(app)
    client, _headers = _anonymous(app)

    res = client.get(f"/delivery/{project['delivery_token']}")
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["project"]["id"] == project["id"]
    assert body["organization"]["name"] == "Lens & Light"
    assert body["customer"]["name"] == "Jamie Realtor"
    assert [m["filename"] for m in body["media"]] == ["front.jpg"]
    assert body["can_approve"] is False


def test_unknown_or_disabled_token_is_not_found() -> None:
    app = create_app()
    owner, _agent, project = _delivered_project(app)
    client, _headers = _anonymous(app)

    assert client.get("/delivery/not-a-real-token").status_code == 404

    owner.post(f"/projects/{project['id']}/delivery/disable")
    assert client.get(f"/delivery/{project['delivery_token']}").status_code == 404

    owner.post(f"/projects/{project['id']}/delivery/enable")
    assert client.get(f"/delivery/{project['delivery_token']}").status_code == 200


def test_linked_customer_approves(db_session: Session) -> None:
    app = create_app()
    owner, agent, project = _delivered_project(app)
    token = project["delivery_token"]

    view = agent.get(f"/delivery/{token}")
    assert view.json()["can_approve"] is True

    res = agent.post(f"/delivery/{token}/approve")
    assert res.status_code == 200, res.text
    assert res.json()["client_approval_status"] == "APPROVED"
    assert res.json()["client_approved_at"] is not None

    notified = db_session.execute(
        select(Notification.user_id).where(
            Notification.project_id == UUID(project["id"]),
            Notification.type == NotificationType.PROJECT_APPROVED,
        )
    ).scalars().all()
    assert UUID(owner.user_id) in notified
    assert UUID(agent.user_id) not in notified


def test_approval_requires_linked_customer_session() -> None:
    app = create_app()
    owner, _agent, project = _delivered_project(app)
    token = project["delivery_token"]

    client, headers = _anonymous(app)
    assert client.post(f"/delivery/{token}/approve", headers=headers).status_code == 401

    # Org staff can comment but not approve on the customer's behalf.
    assert owner.post(f"/delivery/{token}/approve").status_code == 403

    stranger = login(app, prefix="stranger")
    assert stranger.post(f"/delivery/{token}/approve").status_code == 403


def test_request_changes_posts_customer_message() -> None:
    app = create_app()
    owner, agent, project = _delivered_project(app)
    token = project["delivery_token"]

    agent.post(f"/delivery/{token}/approve")
    res = agent.post(f"/delivery/{token}/request-changes", json={"feedback": "Brighten the kitchen"})
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["client_approval_status"] == "CHANGES_REQUESTED"
    assert body["message"]["channel"] == "CUSTOMER"

    detail = owner.get(f"/projects/{project['id']}").json()
    assert detail["client_approved_at"] is None

    thread = owner.get(f"/projects/{project['id']}/messages", params={"channel": "CUSTOMER"})
    assert [m["content"] for m in thread.json()] == ["Brighten the kitchen"]


def test_comment_permissions() -> None:
    app = create_app()
    owner, agent, project = _delivered_project(app)
    token = project["delivery_token"]

    tech = login(app, prefix="tech")
    join(owner, tech, role="TECHNICIAN")

    assert agent.post(f"/delivery/{token}/comments", json={"content": "Looks great"}).status_code == 201
    assert owner.post(f"/delivery/{token}/comments", json={"content": "Thank you!"}).status_code == 201
    assert tech.post(f"/delivery/{token}/comments", json={"content": "hi"}).status_code == 403

    client, _headers = _anonymous(app)
    comments = client.get(f"/delivery/{token}/comments")
    assert [c["content"] for c in comments.json()] == ["Looks great", "Thank you!"]


def test_delivery_artifact_request_is_reused_while_pending() -> None:
    app = create_app()
    _owner, _agent, project = _delivered_project(app)
    token = project["delivery_token"]
    client, headers = _anonymous(app)

    first = client.post(f"/delivery/{token}/artifacts", json={"type": "ALL"}, headers=headers)
    assert first.status_code == 202, first.text
    assert first.json()["status"] == "PENDING"
    assert first.json()["download_url"] is None

    second = client.post(f"/delivery/{token}/artifacts", json={"type": "ALL"}, headers=headers)
    assert second.json()["id"] == first.json()["id"]

    photos = client.post(f"/delivery/{token}/artifacts", json={"type": "PHOTOS_ONLY"}, headers=headers)
    assert photos.json()["id"] != first.json()["id"]

    status = client.get(f"/delivery/{token}/artifacts/{first.json()['id']}")
    assert status.status_code == 200
    assert client.get(f"/delivery/{token}/artifacts/{first.json()['id']}/download").status_code == 409


def test_simultaneous_artifact_requests_share_one_artifact() -> None:
    app = create_app()
    _owner, _agent, project = _delivered_project(app)
    token = project["delivery_token"]
    client, headers = _anonymous(app)

    def request_zip() -> str:
        res = client.post(f"/delivery/{token}/artifacts", json={"type": "ALL"}, headers=headers)
        assert res.status_code == 202, res.text
        return res.json()["id"]

    with session_scope() as blocker:
        blocker.execute(
            text("SELECT id FROM projects WHERE id = :id FOR UPDATE"), {"id": project["id"]}
        )
        with ThreadPoolExecutor(max_workers=2) as pool:
            pending = [pool.submit(request_zip) for _ in range(2)]
            time.sleep(0.5)
            blocker.commit()
            ids = {f.result() for f in pending}

    assert len(ids) == 1
    with session_scope() as session:
        count = session.execute(
            text("SELECT count(*) FROM download_artifacts WHERE project_id = :id"),
            {"id": project["id"]},
        ).scalar_one()
    assert count == 1
