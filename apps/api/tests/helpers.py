from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from fastapi import FastAPI
from fastapi.testclient import TestClient


def unique_email(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


@dataclass
class Actor:
    """A logged-in test client plus the ids the tests keep needing."""

    client: TestClient
    csrf: str
    user_id: str
    personal_org_id: str
    email: str
    org_id: str | None = None
    extra_headers: dict[str, str] = field(default_factory=dict)

    def headers(self, org_id: str | None = None) -> dict[str, str]:
        out = {"x-csrf-token": self.csrf, **self.extra_headers}
        target = org_id or self.org_id
        if target:
            out["x-org-id"] = target
        return out

    def get(self, url: str, *, org_id: str | None = None, **kwargs: Any):
        return self.client.get(url, headers=self.headers(org_id), **kwargs)

    def post(self, url: str, *, org_id: str | None = None, **kwargs: Any):
        return self.client.post(url, headers=self.headers(org_id), **kwargs)

    def patch(self, url: str, *, org_id: str | None = None, **kwargs: Any):
        return self.client.patch(url, headers=self.headers(org_id), **kwargs)

    def put(self, url: str, *, org_id: str | None = None, **kwargs: Any):
        return self.client.put(url, headers=self.headers(org_id), **kwargs)

    def delete(self, url: str, *, org_id: str | None = None, **kwargs: Any):
        return self.client.delete(url, headers=self.headers(org_id), **kwargs)


def get_csrf(client: TestClient) -> str:
    res = client.get("/auth/csrf")
    assert res.status_code == 200
    return res.json()["csrf_token"]


def login(app: FastAPI, *, prefix: str, account_type: str = "PROVIDER") -> Actor:
    client = TestClient(app)
    email = unique_email(prefix)
    csrf = get_csrf(client)
    res = client.post(
        "/auth/dev/login",
        json={"email": email, "account_type": account_type, "display_name": prefix.title()},
        headers={"x-csrf-token": csrf},
    )
    assert res.status_code == 200, res.text
    data = res.json()
    return Actor(
        client=client,
        csrf=data["csrf_token"],
        user_id=data["user"]["id"],
        personal_org_id=data["organization"]["id"],
        email=email,
    )


def create_company(owner: Actor, *, name: str = "Bright Media") -> str:
    res = owner.post("/organizations", json={"name": name, "type": "COMPANY"})
    assert res.status_code == 201, res.text
    owner.org_id = res.json()["id"]
    return owner.org_id


def join(owner: Actor, member: Actor, *, role: str) -> None:
    assert owner.org_id is not None
    invite = owner.post("/organizations/current/invites", json={"email": member.email, "role": role})
    assert invite.status_code == 201, invite.text
    accepted = member.post(
        "/organizations/invites/accept", json={"token": invite.json()["token"]}
    )
    assert accepted.status_code == 200, accepted.text
    member.org_id = owner.org_id


def create_project(actor: Actor, **fields: Any) -> dict:
    body = {"address_line1": "12 Oak St", "city": "Austin", **fields}
    res = actor.post("/projects", json=body)
    assert res.status_code == 201, res.text
    return res.json()
