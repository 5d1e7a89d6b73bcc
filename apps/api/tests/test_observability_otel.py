from __future__ import annotations

from fastapi.testclient import TestClient

from mediaops.core.config import get_settings
from mediaops.core.otel import _parse_otlp_headers, setup_worker_otel, worker_span
from mediaops.main import create_app


def test_otel_tracing_disabled_via_config(monkeypatch) -> None:
    monkeypatch.setenv("ENABLE_OTEL_TRACING", "false")
    get_settings.cache_clear()
    try:
        app = create_app()
        assert app.state.otel_tracing_enabled is False
        assert app.state.otel_tracing_reason == "disabled"
    finally:
        get_settings.cache_clear()


def test_otel_tracing_requires_endpoint(monkeypatch) -> None:
    monkeypatch.setenv("ENABLE_OTEL_TRACING", "true")
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "")
    get_settings.cache_clear()
    try:
        app = create_app()
        assert app.state.otel_tracing_enabled is False
        assert app.state.otel_tracing_reason == "missing_endpoint"
    finally:
        get_settings.cache_clear()


def test_otel_tracing_enablement_instruments_app(monkeypatch) -> None:
    monkeypatch.setenv("ENABLE_OTEL_TRACING", "true")
    monkeypatch.setenv("OTEL_TRACE_SAMPLE_RATIO", "0")
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "http://127.0.0.1:4318/v1/traces")
    monkeypatch.setenv("OTEL_SERVICE_NAME", "mediaops-api-test")
    get_settings.cache_clear()
    try:
        app = create_app()
        client = TestClient(app)
        assert client.get("/healthz").status_code == 200
        assert app.state.otel_tracing_enabled is True
        assert app.state.otel_tracing_reason == "enabled"
    finally:
        get_settings.cache_clear()


def test_otlp_header_parsing_skips_malformed_tokens() -> None:
    assert _parse_otlp_headers("api-key=abc, broken ,x=,team=media") == {
        "api-key": "abc",
        "team": "media",
    }


def test_worker_tracing_follows_api_toggle(monkeypatch) -> None:
    monkeypatch.setenv("ENABLE_OTEL_TRACING", "false")
    get_settings.cache_clear()
    try:
        result = setup_worker_otel(settings=get_settings())
        assert result.enabled is False
        assert result.reason == "disabled"
        assert result.shutdown is None
    finally:
        get_settings.cache_clear()


def test_worker_span_carries_job_attributes() -> None:
    with worker_span("bg_job", job_type="calendar_sync", job_id="j-1") as span:
        # Recording or not depends on the configured provider; the span is always usable.
        span.set_attribute("attempt", 1)
