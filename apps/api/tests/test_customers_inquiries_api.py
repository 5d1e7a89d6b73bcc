from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from helpers import create_company, create_project, join, login
from mediaops.db.session import session_scope
from mediaops.main import create_app

pytestmark = pytest.mark.usefixtures("_test_database")


def test_customer_crud_and_search() -> None:
    app = create_app()
    owner = login(app, prefix="owner")
    create_company(owner)

    a = owner.post("/customers", json={"name": "Jamie Realtor", "email": "Jamie@Example.com", "phone": "555-0100"})
    assert a.status_code == 201, a.text
    b = owner.post("/customers", json={"name": "Pat 100% Homes", "email": "pat@example.com"})
    assert b.status_code == 201

    create_project(owner, customer_id=a.json()["id"], scheduled_time="2030-01-07T15:00:00Z")
    create_project(owner, customer_id=a.json()["id"], scheduled_time="2030-01-07T15:00:00Z")

    listed = owner.get("/customers").json()
    by_id = {c["id"]: c for c in listed}
    assert by_id[a.json()["id"]]["total_jobs"] == 2
    assert by_id[a.json()["id"]]["last_job_at"] is not None
    assert by_id[b.json()["id"]]["total_jobs"] == 0

    assert [c["id"] for c in owner.get("/customers", params={"search": "0100"}).json()] == [a.json()["id"]]
    # LIKE wildcards in the search term are literal.
    assert [c["id"] for c in owner.get("/customers", params={"search": "100%"}).json()] == [b.json()["id"]]

    updated = owner.patch(f"/customers/{b.json()['id']}", json={"notes": "prefers mornings"})
    assert updated.status_code == 200
    assert updated.json()["notes"] == "prefers mornings"

    assert owner.delete(f"/customers/{b.json()['id']}").status_code == 204
    assert owner.patch(f"/customers/{b.json()['id']}", json={"notes": "x"}).status_code == 404


def test_customer_scoping_and_roles() -> None:
    app = create_app()
    owner = login(app, prefix="owner")
    create_company(owner)
    tech = login(app, prefix="tech")
    join(owner, tech, role="TECHNICIAN")

    assert tech.get("/customers").status_code == 403
    assert tech.post("/customers", json={"name": "Nope"}).status_code == 403

    rival = login(app, prefix="rival")
    create_company(rival, name="Rival")
    foreign = rival.post("/customers", json={"name": "Theirs"}).json()
    assert owner.patch(f"/customers/{foreign['id']}", json={"name": "Mine"}).status_code == 403
    assert owner.delete(f"/customers/{foreign['id']}").status_code == 403
    assert owner.post("/projects", json={"customer_id": foreign["id"]}).status_code == 403


def test_customer_link_validation() -> None:
    app = create_app()
    owner = login(app, prefix="owner")
    create_company(owner)
    agent = login(app, prefix="agent", account_type="AGENT")

    missing = owner.post(
        "/customers", json={"name": "Ghost", "user_id": "00000000-0000-0000-0000-000000000000"}
    )
    assert missing.status_code == 404

    assert owner.post("/customers", json={"name": "Jamie", "user_id": agent.user_id}).status_code == 201
    dup = owner.post("/customers", json={"name": "Jamie again", "user_id": agent.user_id})
    assert dup.status_code == 409


def test_personal_owner_manages_own_customers() -> None:
    actor = login(create_app(), prefix="solo")
    res = actor.post("/customers", json={"name": "First client"})
    assert res.status_code == 201
    assert res.json()["organization_id"] == actor.personal_org_id


def test_public_inquiry_then_convert() -> None:
    app = create_app()
    owner = login(app, prefix="owner")
    org_id = create_company(owner)

    public = TestClient(app)
    created = public.post(
        f"/public/organizations/{org_id}/inquiries",
        json={
            "name": "Casey Seller",
            "email": "Casey@Example.com",
            "address": "77 Elm St",
            "message": "Need photos by Friday",
        },
    )
    assert created.status_code == 201, created.text
    inquiry = created.json()
    assert inquiry["status"] == "NEW"
    assert inquiry["email"] == "casey@example.com"

    assert (
        public.post(
            "/public/organizations/00000000-0000-0000-0000-000000000000/inquiries",
            json={"name": "x", "email": "x@example.com"},
        ).status_code
        == 404
    )

    listed = owner.get("/inquiries", params={"status": "NEW"}).json()
    assert [i["id"] for i in listed] == [inquiry["id"]]

    contacted = owner.patch(f"/inquiries/{inquiry['id']}", json={"status": "CONTACTED"})
    assert contacted.json()["status"] == "CONTACTED"
    assert (
        owner.patch(f"/inquiries/{inquiry['id']}", json={"status": "CONVERTED_TO_PROJECT"}).status_code
        == 400
    )

    converted = owner.post(f"/inquiries/{inquiry['id']}/convert")
    assert converted.status_code == 201, converted.text
    project = converted.json()
    assert project["status"] == "BOOKED"
    assert project["organization_id"] == org_id
    assert project["address_line1"] == "77 Elm St"
    assert project["notes"] == "Need photos by Friday"

    after = owner.get(f"/inquiries/{inquiry['id']}").json()
    assert after["status"] == "CONVERTED_TO_PROJECT"
    assert after["converted_project_id"] == project["id"]

    assert owner.post(f"/inquiries/{inquiry['id']}/convert").status_code == 409


def test_concurrent_converts_create_one_project() -> None:
    app = create_app()
    owner = login(app, prefix="owner")
    org_id = create_company(owner)
    inquiry = TestClient(app).post(
        f"/public/organizations/{org_id}/inquiries",
        json={"name": "Rowan", "email": "rowan@example.com", "address": "5 Oak Ct"},
    ).json()

    def convert() -> int:
        return owner.post(f"/inquiries/{inquiry['id']}/convert").status_code

    # Hold the row so both requests are past authorization and waiting on it together.
    with session_scope() as blocker:
        blocker.execute(
            text("SELECT id FROM inquiries WHERE id = :id FOR UPDATE"), {"id": inquiry["id"]}
        )
        with ThreadPoolExecutor(max_workers=2) as pool:
            pending = [pool.submit(convert) for _ in range(2)]
            time.sleep(0.5)
            blocker.commit()
            codes = sorted(f.result() for f in pending)

    assert codes == [201, 409]
    with session_scope() as session:
        projects = session.execute(
            text("SELECT count(*) FROM projects WHERE organization_id = :org"), {"org": org_id}
        ).scalar_one()
    assert projects == 1


def test_inquiries_hidden_from_workers_and_other_orgs() -> None:
    app = create_app()
    owner = login(app, prefix="owner")
    org_id = create_company(owner)
    editor = login(app, prefix="editor")
    join(owner, editor, role="EDITOR")

    inquiry = TestClient(app).post(
        f"/public/organizations/{org_id}/inquiries", json={"name": "Lee", "email": "lee@example.com"}
    ).json()

    assert editor.get("/inquiries").status_code == 403
    assert editor.post(f"/inquiries/{inquiry['id']}/convert").status_code == 403

    rival = login(app, prefix="rival")
    create_company(rival, name="Rival")
    assert rival.get(f"/inquiries/{inquiry['id']}").status_code == 404
