"""Request plumbing shared by every route: request ids, headers, rate limits, access logs."""

from __future__ import annotations

import json
import logging
import re
import threading
import time
from collections import defaultdict, deque
from contextvars import ContextVar
from dataclasses import dataclass, field

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from mediaops.core.config import Settings
from mediaops.core.security import new_random_token

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
logger = logging.getLogger("mediaops.api")

# Paths reachable without a session; delivery tokens travel in the URL.
PUBLIC_PATH_PREFIXES = ("/delivery/", "/public/")
_DELIVERY_TOKEN_RE = re.compile(r"^/delivery/[^/]+")


@dataclass
class RateLimiter:
    """Sliding one-minute window per client key."""

    max_requests: int
    window_seconds: int = 60
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _hits: defaultdict[str, deque[float]] = field(default_factory=lambda: defaultdict(deque))

    def allow(self, key: str, *, now_ts: float) -> bool:
        with self._lock:
            hits = self._hits[key]
            oldest_allowed = now_ts - self.window_seconds
            while hits and hits[0] <= oldest_allowed:
                hits.popleft()
            if len(hits) >= self.max_requests:
                return False
            hits.append(now_ts)
            return True


@dataclass
class RateLimitPolicy:
    authenticated: RateLimiter | None
    public: RateLimiter | None

    @classmethod
    def from_settings(cls, settings: Settings) -> RateLimitPolicy:
        def _limiter(limit: int) -> RateLimiter | None:
            return RateLimiter(max_requests=limit) if limit > 0 else None

        return cls(
            authenticated=_limiter(settings.RATE_LIMIT_REQUESTS_PER_MINUTE),
            public=_limiter(settings.PUBLIC_RATE_LIMIT_REQUESTS_PER_MINUTE),
        )

    def allow(self, request: Request, *, now_ts: float) -> bool:
        path = request.url.path
        is_public = path.startswith(PUBLIC_PATH_PREFIXES)
        limiter = self.public if is_public else self.authenticated
        if limiter is None:
            return True
        # Public traffic gets its own bucket so link scraping cannot starve the app.
        bucket = f"public:{client_ip(request)}" if is_public else client_ip(request)
        return limiter.allow(bucket, now_ts=now_ts)


def build_request_id(request: Request, *, header_name: str) -> str:
    incoming = (request.headers.get(header_name) or "").strip()
    if incoming:
        return incoming[:128]
    return new_random_token(nbytes=18)


def apply_security_headers(response: Response, *, settings: Settings) -> None:
    for name, value in (
        ("X-Content-Type-Options", "nosniff"),
        ("X-Frame-Options", "DENY"),
        ("Referrer-Policy", "same-origin"),
        ("Content-Security-Policy", settings.CONTENT_SECURITY_POLICY),
    ):
        response.headers.setdefault(name, value)


def client_ip(request: Request) -> str:
    forwarded_for = (request.headers.get("x-forwarded-for") or "").strip()
    if forwarded_for:
        return forwarded_for.split(",", 1)[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limit_response() -> JSONResponse:
    return JSONResponse(status_code=429, content={"detail": "Rate limit exceeded"})


def redact_path(path: str) -> str:
    return _DELIVERY_TOKEN_RE.sub("/delivery/{token}", path, count=1)


def log_request_completion(
    *,
    request_id: str,
    method: str,
    path: str,
    status_code: int,
    duration_ms: int,
    rate_limited: bool,
) -> None:
    record = {
        "event": "http.request.completed",
        "request_id": request_id,
        "method": method,
        "path": redact_path(path),
        "status_code": status_code,
        "duration_ms": duration_ms,
        "rate_limited": rate_limited,
    }
    logger.info(json.dumps(record, separators=(",", ":"), sort_keys=True))


def now_ts() -> float:
    return time.time()
