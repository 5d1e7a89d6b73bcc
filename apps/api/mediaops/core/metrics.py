from __future__ import annotations

from prometheus_client import Counter, Histogram

_HTTP_REQUESTS = Counter(
    "mediaops_http_requests_total",
    "Total HTTP requests handled by the API.",
    labelnames=("method", "path", "status_code"),
)
_HTTP_LATENCY = Histogram(
    "mediaops_http_request_duration_seconds",
    "HTTP request duration in seconds.",
    labelnames=("method", "path"),
)
_HTTP_RATE_LIMITED = Counter(
    "mediaops_http_rate_limited_total",
    "Total HTTP requests blocked by rate limiting.",
    labelnames=("method", "path"),
)

_ARTIFACT_EVENTS = Counter(
    "mediaops_artifact_events_total",
    "Download artifact worker events.",
    labelnames=("event",),
)
_ARTIFACT_BUILD_SECONDS = Histogram(
    "mediaops_artifact_build_seconds",
    "Time from claim to READY for a download archive.",
    buckets=(1, 5, 15, 30, 60, 120, 300, 600),
)
_ARTIFACT_ZIP_BYTES = Histogram(
    "mediaops_artifact_zip_bytes",
    "Size of generated download archives.",
    buckets=tuple(mb * 1024 * 1024 for mb in (1, 10, 50, 100, 250, 500, 1024, 2048)),
)
_JOBS = Counter(
    "mediaops_bg_jobs_total",
    "Background jobs finished by the worker.",
    labelnames=("type", "outcome"),
)

ARTIFACT_EVENTS = frozenset(
    {"claimed", "claim_lost", "recovered", "recovery_failed", "completed", "retried", "failed"}
)


def observe_http_request(
    *,
    method: str,
    path: str,
    status_code: int,
    duration_ms: int,
    rate_limited: bool,
) -> None:
    labels = {"method": method or "UNKNOWN", "path": path or "unknown"}
    _HTTP_REQUESTS.labels(status_code=str(status_code), **labels).inc()
    _HTTP_LATENCY.labels(**labels).observe(max(0, duration_ms) / 1000)
    if rate_limited:
        _HTTP_RATE_LIMITED.labels(**labels).inc()


def observe_artifact_event(event: str, *, count: int = 1) -> None:
    if event not in ARTIFACT_EVENTS:
        raise ValueError(f"Unknown artifact event: {event}")
    if count > 0:
        _ARTIFACT_EVENTS.labels(event=event).inc(count)


def observe_artifact_build(*, duration_seconds: float, zip_bytes: int) -> None:
    _ARTIFACT_BUILD_SECONDS.observe(max(0.0, duration_seconds))
    _ARTIFACT_ZIP_BYTES.observe(zip_bytes)


def observe_job(*, job_type: str, outcome: str) -> None:
    _JOBS.labels(type=job_type, outcome=outcome).inc()
