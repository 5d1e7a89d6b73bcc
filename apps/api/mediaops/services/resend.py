from __future__ import annotations

from html import escape

import httpx


class ResendApiError(RuntimeError):
    def __init__(self, *, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


def send_email(
    client: httpx.Client,
    *,
    base_url: str,
    api_key: str,
    from_email: str,
    to_email: str,
    subject: str,
    html: str,
) -> str | None:
    res = client.post(
        f"{base_url.rstrip('/')}/emails",
        headers={"Authorization": f"Bearer {api_key}"},
        json={"from": from_email, "to": [to_email], "subject": subject, "html": html},
    )
    if res.status_code >= 400:
        message = "Resend email send failed"
        try:
            message = res.json().get("message") or message
        except ValueError:
            pass
        raise ResendApiError(status_code=res.status_code, message=message)
    return res.json().get("id")


def render_delivery_email(
    *, to_name: str | None, organization_name: str, address: str, delivery_url: str
) -> tuple[str, str]:
    subject = f"Your media for {address} is ready"
    greeting = f"Hi {escape(to_name)}," if to_name else "Hi,"
    html = (
        f"<p>{greeting}</p>"
        f"<p>{escape(organization_name)} has delivered the media for "
        f"<strong>{escape(address)}</strong>.</p>"
        f'<p><a href="{escape(delivery_url, quote=True)}">View your delivery</a></p>'
    )
    return subject, html
