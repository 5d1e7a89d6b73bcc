from __future__ import annotations

import pytest

from helpers import create_company, create_project, join, login
from mediaops.main import create_app

pytestmark = pytest.mark.usefixtures("_test_database")


def test_notifications_list_and_read_flow() -> None:
    app = create_app()
    owner = login(app, prefix="owner")
    create_company(owner)
    tech = login(app, prefix="tech")
    join(owner, tech, role="TECHNICIAN")

    project = create_project(owner)
    res = owner.post(f"/projects/{project['id']}/assign/technician", json={"user_id": tech.user_id})
    assert res.status_code == 200, res.text
    owner.post(f"/projects/{project['id']}/messages", json={"content": "Gate code is 1234"})

    listed = tech.get("/notifications")
    assert listed.status_code == 200
    types = [n["type"] for n in listed.json()]
    assert sorted(types) == ["NEW_MESSAGE", "PROJECT_ASSIGNED"]
    assert tech.get("/notifications/unread-count").json() == {"unread": 2}

    assigned = next(n for n in listed.json() if n["type"] == "PROJECT_ASSIGNED")
    assert assigned["payload"]["role"] == "TECHNICIAN"
    read = tech.post(f"/notifications/{assigned['id']}/read")
    assert read.status_code == 200
    assert read.json()["read_at"] is not None
    assert tech.get("/notifications/unread-count").json() == {"unread": 1}

    unread = tech.get("/notifications", params={"unread_only": True}).json()
    assert [n["type"] for n in unread] == ["NEW_MESSAGE"]

    assert tech.post("/notifications/read-all").json() == {"updated": 1}
    assert tech.get("/notifications/unread-count").json() == {"unread": 0}


def test_notifications_are_private_to_recipient() -> None:
    app = create_app()
    owner = login(app, prefix="owner")
    create_company(owner)
    tech = login(app, prefix="tech")
    join(owner, tech, role="TECHNICIAN")
    project = create_project(owner)
    owner.post(f"/projects/{project['id']}/assign/technician", json={"user_id": tech.user_id})

    notification = tech.get("/notifications").json()[0]
    assert owner.post(f"/notifications/{notification['id']}/read").status_code == 404
    assert owner.get("/notifications").json() == []


def test_notifications_limit_bounds() -> None:
    actor = login(create_app(), prefix="limits")
    assert actor.get("/notifications", params={"limit": 0}).status_code == 422
    assert actor.get("/notifications", params={"limit": 201}).status_code == 422
    assert actor.get("/notifications", params={"limit": 200}).status_code == 200


def test_availability_defaults() -> None:
    actor = login(create_app(), prefix="avail")
    res = actor.get("/availability")
    assert res.status_code == 200
    body = res.json()
    assert body["is_available"] is True
    assert body["auto_decline_bookings"] is False
    days = {wh["day_of_week"]: wh for wh in body["work_hours"]}
    assert len(days) == 7
    assert days["MONDAY"] == {
        "day_of_week": "MONDAY",
        "is_enabled": True,
        "start_time": "09:00",
        "end_time": "17:00",
    }
    assert days["SUNDAY"]["is_enabled"] is False


def test_availability_status_partial_update() -> None:
    actor = login(create_app(), prefix="avail")
    res = actor.patch("/availability/status", json={"is_available": False, "availability_note": "On leave"})
    assert res.status_code == 200, res.text
    assert res.json()["is_available"] is False
    assert res.json()["availability_note"] == "On leave"

    res = actor.patch("/availability/status", json={"auto_decline_bookings": True})
    body = res.json()
    assert body["auto_decline_bookings"] is True
    # Untouched fields keep their values.
    assert body["is_available"] is False
    assert body["availability_note"] == "On leave"

    assert actor.patch("/availability/status", json={"is_available": None}).status_code == 422


def test_work_hours_update_and_validation() -> None:
    actor = login(create_app(), prefix="hours")
    res = actor.put(
        "/availability/work-hours",
        json={
            "work_hours": [
                {"day_of_week": "SATURDAY", "is_enabled": True, "start_time": "10:00", "end_time": "14:00"},
                {"day_of_week": "MONDAY", "is_enabled": False, "start_time": "09:00", "end_time": "17:00"},
            ]
        },
    )
    assert res.status_code == 200, res.text
    days = {wh["day_of_week"]: wh for wh in res.json()["work_hours"]}
    assert days["SATURDAY"]["is_enabled"] is True
    assert days["SATURDAY"]["start_time"] == "10:00"
    assert days["MONDAY"]["is_enabled"] is False
    assert days["TUESDAY"]["is_enabled"] is True

    dup = actor.put(
        "/availability/work-hours",
        json={
            "work_hours": [
                {"day_of_week": "FRIDAY", "start_time": "09:00", "end_time": "17:00"},
                {"day_of_week": "FRIDAY", "start_time": "10:00", "end_time": "12:00"},
            ]
        },
    )
    assert dup.status_code == 400

    bad_format = actor.put(
        "/availability/work-hours",
        json={"work_hours": [{"day_of_week": "FRIDAY", "start_time": "25:00", "end_time": "26:00"}]},
    )
    assert bad_format.status_code == 400

    inverted = actor.put(
        "/availability/work-hours",
        json={"work_hours": [{"day_of_week": "FRIDAY", "start_time": "17:00", "end_time": "09:00"}]},
    )
    assert inverted.status_code == 400


def test_unavailable_technician_gets_warning_on_assignment() -> None:
    app = create_app()
    owner = login(app, prefix="owner")
    create_company(owner)
    tech = login(app, prefix="tech")
    join(owner, tech, role="TECHNICIAN")
    tech.patch("/availability/status", json={"is_available": False, "availability_note": "Vacation"})

    project = create_project(owner, scheduled_time="2030-01-07T15:00:00Z")
    res = owner.post(f"/projects/{project['id']}/assign/technician", json={"user_id": tech.user_id})
    assert res.status_code == 200, res.text
    assert res.json()["changed"] is True
    assert res.json()["warning"] == "Technician may be unavailable: Vacation"
