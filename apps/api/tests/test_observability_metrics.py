from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from mediaops.core.config import get_settings
from mediaops.core.metrics import observe_artifact_build, observe_artifact_event
from mediaops.main import create_app


def _scrape() -> str:
    res = TestClient(create_app()).get("/metrics")
    assert res.status_code == 200
    assert "text/plain" in (res.headers.get("content-type") or "")
    return res.text


def test_http_requests_are_labelled_by_route_template() -> None:
    client = TestClient(create_app())
    assert client.get("/healthz").status_code == 200
    # Unrouted paths collapse into one label instead of one series per URL.
    assert client.get("/no-such-route/abc123").status_code == 404

    body = client.get("/metrics").text
    assert "mediaops_http_requests_total" in body
    assert "mediaops_http_request_duration_seconds" in body
    assert 'path="/healthz"' in body
    assert 'path="unmatched"' in body
    assert "abc123" not in body


def test_artifact_worker_metrics_are_exported() -> None:
    observe_artifact_event("claimed")
    observe_artifact_build(duration_seconds=2.5, zip_bytes=3 * 1024 * 1024)

    body = _scrape()
    assert 'mediaops_artifact_events_total{event="claimed"}' in body
    assert "mediaops_artifact_build_seconds_count" in body
    assert "mediaops_artifact_zip_bytes_bucket" in body


def test_unknown_artifact_event_is_rejected() -> None:
    with pytest.raises(ValueError):
        observe_artifact_event("exploded")


def test_metrics_endpoint_can_be_disabled(monkeypatch) -> None:
    monkeypatch.setenv("ENABLE_PROMETHEUS_METRICS", "false")
    get_settings.cache_clear()
    try:
        assert TestClient(create_app()).get("/metrics").status_code == 404
    finally:
        get_settings.cache_clear()
