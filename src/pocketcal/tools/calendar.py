# Google Calendar tools — calendars, event listing/search, create, update, delete.
# Created: 2026-10-09

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from pocketcal.auth.credentials import Credential
from pocketcal.integrations.gcalendar import CalendarClient
from pocketcal.tools.protocol import BaseTool, ToolResult
from pocketcal.tools.registry import ToolCatalog

logger = logging.getLogger(__name__)

_CALENDAR_ID = {
    "type": "string",
    "description": "Calendar ID (default: 'primary')",
    "default": "primary",
}
_EVENT_ID = {"type": "string", "description": "Event ID"}

DEFAULT_TIMEOUT = 15.0


def _parse_time(value: str | None, default: datetime) -> datetime:
    if not value:
        return default
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _format_events(events: list[dict[str, Any]]) -> str:
    lines = [f"Found {len(events)} event(s):\n"]
    for i, ev in enumerate(events, 1):
        loc = f" @ {ev['location']}" if ev["location"] else ""
        attendees = ""
        if ev["attendees"]:
            attendees = f"\n   Attendees: {', '.join(ev['attendees'][:5])}"
        lines.append(
            f"{i}. {ev['summary']} (id: {ev['id']})\n"
            f"   {ev['start']} → {ev['end']}{loc}{attendees}\n"
        )
    return "\n".join(lines)


class _CalendarTool(BaseTool):
    """Shared plumbing: every call builds a client for the credential it is given."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout

    def _client(self, credential: Credential) -> CalendarClient:
        return CalendarClient(credential, timeout=self.timeout)


class ListCalendarsTool(_CalendarTool):
    """List the user's calendars."""

    @property
    def name(self) -> str:
        return "list-calendars"

    @property
    def description(self) -> str:
        return "List all calendars the authorized account can see."

    async def execute(self, credential: Credential) -> ToolResult:
        try:
            calendars = await self._client(credential).list_calendars()
        except (RuntimeError, ValueError) as e:
            return self._error(str(e))

        if not calendars:
            return self._success("No calendars found.")

        lines = [f"Found {len(calendars)} calendar(s):"]
        for cal in calendars:
            marker = " (primary)" if cal["primary"] else ""
            lines.append(f"- {cal['summary']}{marker} — id: {cal['id']}")
        return self._success("\n".join(lines))


class ListEventsTool(_CalendarTool):
    """List upcoming events in a calendar."""

    @property
    def name(self) -> str:
        return "list-events"

    @property
    def description(self) -> str:
        return (
            "List events from a Google Calendar in a time range. "
            "Returns titles, times, locations, and attendees."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "calendar_id": _CALENDAR_ID,
                "time_min": {
                    "type": "string",
                    "description": "Start of range, ISO 8601 (default: now)",
                },
                "time_max": {
                    "type": "string",
                    "description": "End of range, ISO 8601 (default: 7 days after start)",
                },
                "max_results": {
                    "type": "integer",
                    "description": "Maximum number of events (default: 10, max 250)",
                    "default": 10,
                },
            },
            "required": [],
        }

    async def execute(
        self,
        credential: Credential,
        calendar_id: str = "primary",
        time_min: str | None = None,
        time_max: str | None = None,
        max_results: int = 10,
    ) -> ToolResult:
        try:
            start = _parse_time(time_min, datetime.now(UTC))
            end = _parse_time(time_max, start + timedelta(days=7))
            events = await self._client(credential).list_events(
                calendar_id=calendar_id,
                time_min=start,
                time_max=end,
                max_results=max(1, min(max_results, 250)),
            )
        except (RuntimeError, ValueError) as e:
            return self._error(str(e))

        if not events:
            return self._success("No events in that time range.")
        return self._success(_format_events(events))


class SearchEventsTool(_CalendarTool):
    """Free-text search over events."""

    @property
    def name(self) -> str:
        return "search-events"

    @property
    def description(self) -> str:
        return "Search events in a Google Calendar by text (title, description, location)."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search terms"},
                "calendar_id": _CALENDAR_ID,
                "time_min": {
                    "type": "string",
                    "description": "Start of range, ISO 8601 (default: now)",
                },
                "time_max": {
                    "type": "string",
                    "description": "End of range, ISO 8601 (default: 30 days after start)",
                },
            },
            "required": ["query"],
        }

    async def execute(
        self,
        credential: Credential,
        query: str,
        calendar_id: str = "primary",
        time_min: str | None = None,
        time_max: str | None = None,
    ) -> ToolResult:
        try:
            start = _parse_time(time_min, datetime.now(UTC))
            end = _parse_time(time_max, start + timedelta(days=30))
            events = await self._client(credential).list_events(
                calendar_id=calendar_id,
                time_min=start,
                time_max=end,
                max_results=50,
                query=query,
            )
        except (RuntimeError, ValueError) as e:
            return self._error(str(e))

        if not events:
            return self._success(f"No events matching '{query}'.")
        return self._success(_format_events(events))


class CreateEventTool(_CalendarTool):
    """Create a calendar event."""

    @property
    def name(self) -> str:
        return "create-event"

    @property
    def description(self) -> str:
        return "Add an event to a Google Calendar. Times are RFC 3339; attendees are emails."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "summary": {"type": "string", "description": "Event title"},
                "start": {
                    "type": "string",
                    "description": "Event start, e.g. 2026-10-20T09:00:00+02:00",
                },
                "end": {
                    "type": "string",
                    "description": "Event end, e.g. 2026-10-20T09:30:00+02:00",
                },
                "time_zone": {
                    "type": "string",
                    "description": "IANA time zone for start/end (optional)",
                },
                "description": {"type": "string", "description": "Event description (optional)"},
                "location": {"type": "string", "description": "Event location (optional)"},
                "attendees": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Attendee email addresses",
                },
                "calendar_id": _CALENDAR_ID,
            },
            "required": ["summary", "start", "end"],
        }

    async def execute(
        self,
        credential: Credential,
        summary: str,
        start: str,
        end: str,
        description: str = "",
        location: str = "",
        attendees: list[str] | None = None,
        calendar_id: str = "primary",
        time_zone: str | None = None,
    ) -> ToolResult:
        try:
            event = await self._client(credential).create_event(
                summary=summary,
                start=start,
                end=end,
                description=description,
                location=location,
                attendees=attendees,
                calendar_id=calendar_id,
                time_zone=time_zone,
            )
        except (RuntimeError, ValueError) as e:
            return self._error(str(e))

        return self._success(
            f"Event created: {event['summary']} (id: {event['id']})\nLink: {event['htmlLink']}"
        )


class UpdateEventTool(_CalendarTool):
    """Patch fields of an existing event."""

    _FIELDS = ("summary", "description", "location")

    @property
    def name(self) -> str:
        return "update-event"

    @property
    def description(self) -> str:
        return "Update an existing Google Calendar event. Only the given fields change."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "event_id": _EVENT_ID,
                "calendar_id": _CALENDAR_ID,
                "summary": {"type": "string", "description": "New title"},
                "start": {"type": "string", "description": "New start time, ISO 8601"},
                "end": {"type": "string", "description": "New end time, ISO 8601"},
                "time_zone": {"type": "string", "description": "IANA time zone for start/end"},
                "description": {"type": "string", "description": "New description"},
                "location": {"type": "string", "description": "New location"},
                "attendees": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Replacement attendee email list",
                },
            },
            "required": ["event_id"],
        }

    async def execute(
        self,
        credential: Credential,
        event_id: str,
        calendar_id: str = "primary",
        start: str | None = None,
        end: str | None = None,
        time_zone: str | None = None,
        attendees: list[str] | None = None,
        **fields: Any,
    ) -> ToolResult:
        unknown = set(fields) - set(self._FIELDS)
        if unknown:
            return self._error(f"Unknown fields: {', '.join(sorted(unknown))}")

        changes: dict[str, Any] = {k: v for k, v in fields.items() if v is not None}
        for key, value in (("start", start), ("end", end)):
            if value:
                changes[key] = {"dateTime": value}
                if time_zone:
                    changes[key]["timeZone"] = time_zone
        if attendees is not None:
            changes["attendees"] = [{"email": e} for e in attendees]

        if not changes:
            return self._error("Nothing to update; pass at least one field to change.")

        try:
            event = await self._client(credential).update_event(
                event_id=event_id, calendar_id=calendar_id, changes=changes
            )
        except (RuntimeError, ValueError) as e:
            return self._error(str(e))

        return self._success(f"Event updated: {event['summary']} (id: {event['id']})")


class DeleteEventTool(_CalendarTool):
    """Delete an event."""

    @property
    def name(self) -> str:
        return "delete-event"

    @property
    def description(self) -> str:
        return "Delete an event from Google Calendar."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"event_id": _EVENT_ID, "calendar_id": _CALENDAR_ID},
            "required": ["event_id"],
        }

    async def execute(
        self, credential: Credential, event_id: str, calendar_id: str = "primary"
    ) -> ToolResult:
        try:
            await self._client(credential).delete_event(event_id, calendar_id=calendar_id)
        except (RuntimeError, ValueError) as e:
            return self._error(str(e))
        return self._success(f"Event {event_id} deleted.")


def build_calendar_catalog(timeout: float = DEFAULT_TIMEOUT) -> ToolCatalog:
    """Return the catalog of all calendar tools, each using ``timeout`` for API calls."""
    catalog = ToolCatalog()
    for tool in (
        ListCalendarsTool(timeout),
        ListEventsTool(timeout),
        SearchEventsTool(timeout),
        CreateEventTool(timeout),
        UpdateEventTool(timeout),
        DeleteEventTool(timeout),
    ):
        catalog.register(tool)
    return catalog
