from __future__ import annotations

from fastapi.testclient import TestClient

from mediaops.main import create_app


def test_healthz_ok() -> None:
    app = create_app()
    client = TestClient(app)
    res = client.get("/healthz")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_responses_carry_request_id_and_security_headers() -> None:
    client = TestClient(create_app())
    res = client.get("/healthz", headers={"x-request-id": "req-123"})
    assert res.headers["x-request-id"] == "req-123"
    assert res.headers["x-content-type-options"] == "nosniff"
    assert res.headers["x-frame-options"] == "DENY"


def test_rate_limit_returns_429(monkeypatch) -> None:
    from mediaops.core.config import get_settings

    monkeypatch.setenv("RATE_LIMIT_REQUESTS_PER_MINUTE", "2")
    get_settings.cache_clear()
    try:
        client = TestClient(create_app())
        assert client.get("/healthz").status_code == 200
        assert client.get("/healthz").status_code == 200
        res = client.get("/healthz")
        assert res.status_code == 429
        assert res.json() == {"detail": "Rate limit exceeded"}
    finally:
        get_settings.cache_clear()


def test_readyz_reports_worker_backlog(db_session) -> None:
    from sqlalchemy import text

    db_session.execute(text("DELETE FROM bg_jobs"))
    db_session.execute(text("DELETE FROM download_artifacts"))
    db_session.commit()

    res = TestClient(create_app()).get("/readyz")
    assert res.status_code == 200
    assert res.json() == {"status": "ready", "queued_jobs": 0, "open_artifacts": 0}


def test_public_paths_have_their_own_rate_limit(monkeypatch) -> None:
    from mediaops.core.config import get_settings

    monkeypatch.setenv("RATE_LIMIT_REQUESTS_PER_MINUTE", "0")
    monkeypatch.setenv("PUBLIC_RATE_LIMIT_REQUESTS_PER_MINUTE", "1")
    get_settings.cache_clear()
    try:
        client = TestClient(create_app())
        assert client.get("/public/nothing-here").status_code == 404
        assert client.get("/public/nothing-here").status_code == 429
        # Session-backed routes are not throttled by public traffic.
        assert client.get("/healthz").status_code == 200
    finally:
        get_settings.cache_clear()


def test_delivery_tokens_are_redacted_from_request_logs() -> None:
    from mediaops.core.middleware import redact_path

    assert redact_path("/delivery/3f2b-secret/media") == "/delivery/{token}/media"
    assert redact_path("/delivery/3f2b-secret") == "/delivery/{token}"
    assert redact_path("/projects/abc") == "/projects/abc"
