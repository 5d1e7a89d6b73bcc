from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import httpx

# Nylas resolves "primary" to the grant's default calendar.
DEFAULT_CALENDAR_ID = "primary"


@dataclass(frozen=True)
class CalendarEventInput:
    title: str
    description: str
    location: str
    start_time: datetime
    end_time: datetime
    metadata: dict[str, str]


class NylasApiError(RuntimeError):
    def __init__(self, *, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


def _events_url(base_url: str, grant_id: str, event_id: str | None = None) -> str:
    url = f"{base_url.rstrip('/')}/v3/grants/{grant_id}/events"
    if event_id:
        url = f"{url}/{event_id}"
    return url


def _body(event: CalendarEventInput) -> dict:
    return {
        "title": event.title,
        "description": event.description,
        "location": event.location,
        "when": {
            "start_time": int(event.start_time.timestamp()),
            "end_time": int(event.end_time.timestamp()),
        },
        "metadata": event.metadata,
    }


def create_event(
    client: httpx.Client,
    *,
    base_url: str,
    api_key: str,
    grant_id: str,
    event: CalendarEventInput,
) -> str:
    res = client.post(
        _events_url(base_url, grant_id),
        params={"calendar_id": DEFAULT_CALENDAR_ID},
        headers={"Authorization": f"Bearer {api_key}"},
        json=_body(event),
    )
    _raise_for_nylas_error(res, default_message="Nylas event create failed")
    event_id = (res.json().get("data") or {}).get("id")
    if not event_id:
        raise NylasApiError(status_code=502, message="Nylas event create returned no id")
    return str(event_id)


def update_event(
    client: httpx.Client,
    *,
    base_url: str,
    api_key: str,
    grant_id: str,
    event_id: str,
    event: CalendarEventInput,
) -> None:
    res = client.put(
        _events_url(base_url, grant_id, event_id),
        params={"calendar_id": DEFAULT_CALENDAR_ID},
        headers={"Authorization": f"Bearer {api_key}"},
        json=_body(event),
    )
    _raise_for_nylas_error(res, default_message="Nylas event update failed")


def delete_event(
    client: httpx.Client,
    *,
    base_url: str,
    api_key: str,
    grant_id: str,
    event_id: str,
) -> None:
    res = client.delete(
        _events_url(base_url, grant_id, event_id),
        params={"calendar_id": DEFAULT_CALENDAR_ID},
        headers={"Authorization": f"Bearer {api_key}"},
    )
    # Already gone is as good as deleted.
    if res.status_code == 404:
        return
    _raise_for_nylas_error(res, default_message="Nylas event delete failed")


def _raise_for_nylas_error(res: httpx.Response, *, default_message: str) -> None:
    if res.status_code < 400:
        return

    message = default_message
    try:
        payload = res.json()
        message = (payload.get("error") or {}).get("message") or default_message
    except ValueError:
        message = default_message

    raise NylasApiError(status_code=res.status_code, message=message)
