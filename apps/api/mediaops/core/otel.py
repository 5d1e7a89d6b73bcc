"""OpenTelemetry wiring for the API process and the worker process.

Both processes share one tracer provider per interpreter. The API adds
FastAPI instrumentation on top; the worker opens its own spans around
artifact builds and background jobs via `worker_span`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from threading import Lock

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from mediaops.core.config import Settings
from mediaops.db.session import get_engine

logger = logging.getLogger("mediaops.api")

_provider: TracerProvider | None = None
_provider_lock = Lock()
_sqlalchemy_instrumented = False


@dataclass(frozen=True)
class OTelSetupResult:
    enabled: bool
    reason: str
    shutdown: Callable[[], None] | None = None


def _tracing_blocker(settings: Settings) -> str | None:
    if not settings.ENABLE_OTEL_TRACING:
        return "disabled"
    if not settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT.strip():
        logger.warning(
            "OpenTelemetry tracing is enabled but OTEL_EXPORTER_OTLP_TRACES_ENDPOINT is empty."
        )
        return "missing_endpoint"
    return None


def _tracer_provider(settings: Settings, *, service_name: str) -> TracerProvider:
    global _provider, _sqlalchemy_instrumented
    with _provider_lock:
        if _provider is None:
            provider = TracerProvider(
                resource=Resource.create(
                    {SERVICE_NAME: service_name, SERVICE_VERSION: settings.VERSION}
                ),
                sampler=TraceIdRatioBased(settings.OTEL_TRACE_SAMPLE_RATIO),
            )
            headers = _parse_otlp_headers(settings.OTEL_EXPORTER_OTLP_HEADERS)
            exporter = OTLPSpanExporter(
                endpoint=settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT.strip(),
                headers=headers or None,
            )
            provider.add_span_processor(BatchSpanProcessor(exporter))
            trace.set_tracer_provider(provider)
            _provider = provider

        if not _sqlalchemy_instrumented:
            SQLAlchemyInstrumentor().instrument(engine=get_engine(), tracer_provider=_provider)
            _sqlalchemy_instrumented = True
        return _provider


def setup_otel(*, app: FastAPI, settings: Settings) -> OTelSetupResult:
    blocker = _tracing_blocker(settings)
    if blocker is not None:
        return OTelSetupResult(enabled=False, reason=blocker)

    provider = _tracer_provider(settings, service_name=settings.OTEL_SERVICE_NAME)
    FastAPIInstrumentor.instrument_app(
        app, tracer_provider=provider, excluded_urls=settings.OTEL_EXCLUDED_URLS
    )
    logger.info(
        "OpenTelemetry tracing enabled for service=%s endpoint=%s",
        settings.OTEL_SERVICE_NAME,
        settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT,
    )

    def _shutdown() -> None:
        with suppress(Exception):
            FastAPIInstrumentor.uninstrument_app(app)

    return OTelSetupResult(enabled=True, reason="enabled", shutdown=_shutdown)


def setup_worker_otel(*, settings: Settings) -> OTelSetupResult:
    blocker = _tracing_blocker(settings)
    if blocker is not None:
        return OTelSetupResult(enabled=False, reason=blocker)

    provider = _tracer_provider(settings, service_name=f"{settings.OTEL_SERVICE_NAME}-worker")
    return OTelSetupResult(enabled=True, reason="enabled", shutdown=provider.shutdown)


@contextmanager
def worker_span(name: str, **attributes: str) -> Iterator[trace.Span]:
    # Without a configured provider the global tracer is a no-op.
    tracer = trace.get_tracer("mediaops.worker")
    with tracer.start_as_current_span(name, attributes=attributes) as span:
        yield span


def _parse_otlp_headers(raw_headers: str) -> dict[str, str]:
    """Parse `key=value,key=value`; malformed pieces are logged and dropped."""
    headers: dict[str, str] = {}
    for piece in (p.strip() for p in raw_headers.split(",")):
        if not piece:
            continue
        key, sep, value = piece.partition("=")
        if not sep or not key.strip() or not value.strip():
            logger.warning("Ignoring malformed OTLP header token: %s", piece)
            continue
        headers[key.strip()] = value.strip()
    return headers
