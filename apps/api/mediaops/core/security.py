"""Token minting and auth cookie helpers.

Session tokens are only ever stored as an HMAC digest. Delivery tokens are
UUID strings because they end up in customer-facing links.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import os
import uuid

from fastapi import Response

from mediaops.core.config import get_settings

SESSION_TOKEN_BYTES = 32
INVITE_TOKEN_BYTES = 24


def new_random_token(*, nbytes: int = SESSION_TOKEN_BYTES) -> str:
    # URL-safe base64 without padding keeps cookies and links compact.
    return base64.urlsafe_b64encode(os.urandom(nbytes)).decode("ascii").rstrip("=")


def new_delivery_token() -> str:
    return str(uuid.uuid4())


def new_invite_token() -> str:
    return new_random_token(nbytes=INVITE_TOKEN_BYTES)


def hash_session_token(token: str) -> bytes:
    pepper = get_settings().SESSION_SECRET.encode("utf-8")
    return hmac.new(pepper, token.encode("utf-8"), hashlib.sha256).digest()


def tokens_match(expected: str | None, presented: str | None) -> bool:
    if not expected or not presented:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))


def _write_cookie(response: Response, *, key: str, value: str, httponly: bool) -> None:
    settings = get_settings()
    response.set_cookie(
        key=key,
        value=value,
        httponly=httponly,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
        domain=settings.COOKIE_DOMAIN,
        path="/",
        max_age=settings.SESSION_TTL_SECONDS,
    )


def set_csrf_cookie(response: Response, token: str) -> None:
    # Readable by the frontend, which echoes it back in the CSRF header.
    _write_cookie(response, key=get_settings().CSRF_COOKIE_NAME, value=token, httponly=False)


def set_auth_cookies(response: Response, *, session_token: str, csrf_token: str) -> None:
    _write_cookie(
        response, key=get_settings().SESSION_COOKIE_NAME, value=session_token, httponly=True
    )
    set_csrf_cookie(response, csrf_token)


def clear_auth_cookies(response: Response) -> None:
    settings = get_settings()
    for key in (settings.SESSION_COOKIE_NAME, settings.CSRF_COOKIE_NAME):
        response.delete_cookie(key=key, domain=settings.COOKIE_DOMAIN, path="/")
