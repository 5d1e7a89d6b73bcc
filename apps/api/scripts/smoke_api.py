from __future__ import annotations

import os
import sys

import httpx


def _assert_ok(response: httpx.Response, *, label: str) -> None:
    if response.status_code >= 400:
        raise RuntimeError(f"{label} failed: HTTP {response.status_code} body={response.text}")


def main() -> None:
    base_url = os.environ.get("API_BASE_URL", "http://localhost:8000")
    email = os.environ.get("SMOKE_EMAIL", "smoke-owner@example.com")
    organization_name = os.environ.get("SMOKE_ORG", "Smoke Test Media")

    with httpx.Client(base_url=base_url, timeout=20.0) as client:
        health = client.get("/healthz")
        _assert_ok(health, label="GET /healthz")
        print("ok: GET /healthz")

        ready = client.get("/readyz")
        _assert_ok(ready, label="GET /readyz")
        print("ok: GET /readyz")

        csrf_res = client.get("/auth/csrf")
        _assert_ok(csrf_res, label="GET /auth/csrf")
        csrf_token = csrf_res.json()["csrf_token"]
        headers = {"x-csrf-token": csrf_token}
        print("ok: GET /auth/csrf")

        login = client.post(
            "/auth/dev/login",
            json={"email": email, "account_type": "PROVIDER"},
            headers=headers,
        )
        _assert_ok(login, label="POST /auth/dev/login")
        user = login.json()["user"]
        print("ok: POST /auth/dev/login")

        created = client.post(
            "/organizations", json={"name": organization_name, "type": "COMPANY"}, headers=headers
        )
        _assert_ok(created, label="POST /organizations")
        org = created.json()
        headers["x-org-id"] = org["id"]
        print("ok: POST /organizations")

        project = client.post(
            "/projects", json={"address_line1": "1 Smoke St"}, headers=headers
        )
        _assert_ok(project, label="POST /projects")
        print("ok: POST /projects")

        listing = client.get("/projects", headers=headers)
        _assert_ok(listing, label="GET /projects")
        print("ok: GET /projects")

        delivered = client.patch(
            f"/projects/{project.json()['id']}/status",
            json={"status": "DELIVERED"},
            headers=headers,
        )
        _assert_ok(delivered, label="PATCH /projects/{id}/status")
        token = delivered.json()["delivery_token"]
        print("ok: PATCH /projects/{id}/status")

        delivery = client.get(f"/delivery/{token}")
        _assert_ok(delivery, label="GET /delivery/{token}")
        print("ok: GET /delivery/{token}")

        print(f"smoke complete: org={org['name']} ({org['id']}) user={user['email']}")


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # noqa: BLE001
        print(f"smoke failed: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
