from __future__ import annotations

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from mediaops.core.config import Settings, get_settings
from mediaops.core.metrics import observe_http_request
from mediaops.core.middleware import (
    RateLimitPolicy,
    apply_security_headers,
    build_request_id,
    log_request_completion,
    now_ts,
    rate_limit_response,
    request_id_ctx,
)
from mediaops.core.otel import setup_otel
from mediaops.routers import (
    auth,
    availability,
    customers,
    delivery,
    health,
    inquiries,
    me,
    notifications,
    organizations,
    projects,
)

ROUTERS: tuple[APIRouter, ...] = (
    health.router,
    auth.router,
    me.router,
    organizations.router,
    customers.router,
    inquiries.router,
    inquiries.public_router,
    projects.router,
    notifications.router,
    availability.router,
    delivery.router,
)


def _route_template(request: Request) -> str:
    # Metrics are labelled by template so delivery tokens never become label values.
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def _install_request_middleware(app: FastAPI, settings: Settings) -> None:
    rate_limits = RateLimitPolicy.from_settings(settings)

    @app.middleware("http")
    async def request_context(request, call_next):  # type: ignore[no-untyped-def]
        request_id = build_request_id(request, header_name=settings.REQUEST_ID_HEADER)
        ctx_token = request_id_ctx.set(request_id)
        started = now_ts()
        blocked = not rate_limits.allow(request, now_ts=started)
        status_code = 500

        try:
            response = rate_limit_response() if blocked else await call_next(request)
            status_code = response.status_code
            response.headers[settings.REQUEST_ID_HEADER] = request_id
            apply_security_headers(response, settings=settings)
            return response
        finally:
            duration_ms = int((now_ts() - started) * 1000)
            log_request_completion(
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=duration_ms,
                rate_limited=blocked,
            )
            if settings.ENABLE_PROMETHEUS_METRICS:
                observe_http_request(
                    method=request.method,
                    path=_route_template(request),
                    status_code=status_code,
                    duration_ms=duration_ms,
                    rate_limited=blocked,
                )
            request_id_ctx.reset(ctx_token)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="MediaOps API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_request_middleware(app, settings)

    if settings.ENABLE_PROMETHEUS_METRICS:

        @app.get(settings.PROMETHEUS_METRICS_PATH, include_in_schema=False)
        def metrics() -> Response:
            return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    otel = setup_otel(app=app, settings=settings)
    app.state.otel_tracing_enabled = otel.enabled
    app.state.otel_tracing_reason = otel.reason
    if otel.shutdown is not None:
        app.add_event_handler("shutdown", otel.shutdown)

    for router in ROUTERS:
        app.include_router(router)
    return app


app = create_app()
