# Google Calendar Client — HTTP client for Calendar API v3 using an injected credential.
# Created: 2026-10-09

from __future__ import annotations

import logging
import urllib.parse
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from pocketcal.auth.credentials import Credential

logger = logging.getLogger(__name__)

API_ROOT = "https://www.googleapis.com/calendar/v3"
DEFAULT_WINDOW = timedelta(days=7)


class CalendarAPIError(RuntimeError):
    """The Calendar API rejected a request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _raise_for_status(resp: httpx.Response) -> None:
    try:
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        if status == 401:
            raise CalendarAPIError(
                "Google rejected the access token (401). It may be expired or revoked.",
                status,
            ) from e
        if status == 403:
            raise CalendarAPIError(
                "Access denied (403). The token may lack the calendar scope.", status
            ) from e
        raise CalendarAPIError(
            f"Calendar API returned {status}: {e.response.text[:200]}", status
        ) from e


def _event_summary(item: dict[str, Any]) -> dict[str, Any]:
    start = item.get("start", {})
    end = item.get("end", {})
    return {
        "id": item.get("id", ""),
        "summary": item.get("summary", "(no title)"),
        "start": start.get("dateTime", start.get("date", "")),
        "end": end.get("dateTime", end.get("date", "")),
        "location": item.get("location", ""),
        "description": item.get("description", ""),
        "attendees": [a.get("email", "") for a in item.get("attendees", [])],
        "htmlLink": item.get("htmlLink", ""),
    }


class CalendarClient:
    """Thin async wrapper over the Calendar v3 REST endpoints.

    Authorizes with the credential it was built with; there is no shared
    identity between instances.
    """

    def __init__(self, credential: Credential, timeout: float = 15.0):
        self._credential = credential
        self._timeout = timeout

    async def _call(self, verb: str, path: str, **kwargs: Any) -> Any:
        """Send one request and return the decoded body (None for empty replies)."""
        auth = f"{self._credential.token_type} {self._credential.access_token}"
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            send = getattr(client, verb)
            resp = await send(f"{API_ROOT}{path}", headers={"Authorization": auth}, **kwargs)
            _raise_for_status(resp)
            return resp.json() if verb != "delete" else None

    async def list_calendars(self) -> list[dict[str, Any]]:
        data = await self._call("get", "/users/me/calendarList")
        return [
            {
                "id": entry.get("id", ""),
                "summary": entry.get("summary", ""),
                "primary": bool(entry.get("primary")),
                "timeZone": entry.get("timeZone", ""),
            }
            for entry in data.get("items", [])
        ]

    async def list_events(
        self,
        calendar_id: str = "primary",
        time_min: datetime | None = None,
        time_max: datetime | None = None,
        max_results: int = 10,
        query: str | None = None,
    ) -> list[dict[str, Any]]:
        """Expand recurring events in ``[time_min, time_max)`` ordered by start.

        The window defaults to the next seven days. ``query`` is passed to
        Google's free-text search (``q``).
        """
        window_start = time_min or datetime.now(UTC)
        window_end = time_max or window_start + DEFAULT_WINDOW

        params: dict[str, Any] = {
            "timeMin": window_start.isoformat(),
            "timeMax": window_end.isoformat(),
            "maxResults": max_results,
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        if query:
            params["q"] = query

        data = await self._call("get", _events_path(calendar_id), params=params)
        return [_event_summary(entry) for entry in data.get("items", [])]

    async def create_event(
        self,
        summary: str,
        start: str,
        end: str,
        description: str = "",
        location: str = "",
        attendees: list[str] | None = None,
        calendar_id: str = "primary",
        time_zone: str | None = None,
    ) -> dict[str, Any]:
        """Insert an event; ``start``/``end`` are RFC 3339 timestamps."""
        payload: dict[str, Any] = {
            "summary": summary,
            "start": _when(start, time_zone),
            "end": _when(end, time_zone),
        }
        optional = {"description": description, "location": location}
        payload.update({key: value for key, value in optional.items() if value})
        if attendees:
            payload["attendees"] = [{"email": address} for address in attendees]

        created = await self._call("post", _events_path(calendar_id), json=payload)
        return _event_summary(created)

    async def update_event(
        self,
        event_id: str,
        calendar_id: str = "primary",
        changes: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        updated = await self._call(
            "patch", _events_path(calendar_id, event_id), json=changes or {}
        )
        return _event_summary(updated)

    async def delete_event(self, event_id: str, calendar_id: str = "primary") -> None:
        await self._call("delete", _events_path(calendar_id, event_id))
        logger.info("Deleted event %s from %s", event_id, calendar_id)


def _events_path(calendar_id: str, event_id: str | None = None) -> str:
    # Calendar IDs may contain "#" and "@" (e.g. holiday calendars).
    path = f"/calendars/{urllib.parse.quote(calendar_id, safe='')}/events"
    if event_id is not None:
        path += f"/{urllib.parse.quote(event_id, safe='')}"
    return path


def _when(value: str, time_zone: str | None) -> dict[str, str]:
    when = {"dateTime": value}
    if time_zone:
        when["timeZone"] = time_zone
    return when
