"""
Microsoft Graph calendar adapter for reading busy times and saving recipes.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import EventStoreError
from ..domain.models import CalendarEvent, TimeRange

logger = logging.getLogger(__name__)


class GraphCalendarClient:
    """
    Calendar backend on top of Microsoft Graph.

    Reads events through ``/me/calendarView`` and writes scheduled recipes to
    a dedicated cooking calendar, creating that calendar on first use.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"
    PAGE_SIZE = 100

    def __init__(self, access_token: str, calendar_name: str = "Potluck", timezone: str = "Europe/Berlin"):
        """
        Initialize the Graph calendar client.

        Args:
            access_token: Valid Microsoft Graph access token
            calendar_name: Name of the calendar scheduled recipes go to
            timezone: IANA timezone used when writing events
        """
        self.calendar_name = calendar_name
        self.timezone = timezone
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json"
        }
        self._calendar_ids: Dict[str, str] = {}

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        headers = dict(self.headers)
        headers.update(kwargs.pop("headers", {}))
        try:
            response = requests.request(method, url, headers=headers, timeout=30, **kwargs)
            response.raise_for_status()
            return response.json() if response.content else {}
        except requests.exceptions.RequestException as e:
            raise EventStoreError(f"Microsoft Graph request failed ({method} {url}): {e}") from e

    def find_calendar_id(self, name: str) -> Optional[str]:
        """Return the id of the user's calendar with this name, if any."""
        if name in self._calendar_ids:
            return self._calendar_ids[name]

        data = self._request(
            "GET",
            f"{self.GRAPH_API_ENDPOINT}/me/calendars",
            params={"$select": "id,name"},
        )
        for calendar in data.get("value", []):
            if calendar.get("name") == name:
                self._calendar_ids[name] = calendar["id"]
                return calendar["id"]
        return None

    def ensure_calendar(self) -> str:
        """Return the cooking calendar id, creating the calendar if missing."""
        calendar_id = self.find_calendar_id(self.calendar_name)
        if calendar_id:
            return calendar_id

        logger.info("Creating calendar '%s'", self.calendar_name)
        created = self._request(
            "POST",
            f"{self.GRAPH_API_ENDPOINT}/me/calendars",
            json={"name": self.calendar_name},
        )
        self._calendar_ids[self.calendar_name] = created["id"]
        return created["id"]

    def list_events(
        self,
        start_time: DateTime,
        end_time: DateTime,
        timezone: str,
        calendar_name: Optional[str] = None,
    ) -> List[CalendarEvent]:
        """
        Fetch events in a window, following pagination links.

        Returns an empty list when ``calendar_name`` does not exist.
        """
        if calendar_name is None:
            url = f"{self.GRAPH_API_ENDPOINT}/me/calendarView"
        else:
            calendar_id = self.find_calendar_id(calendar_name)
            if calendar_id is None:
                return []
            url = f"{self.GRAPH_API_ENDPOINT}/me/calendars/{calendar_id}/calendarView"

        params: Optional[Dict[str, Any]] = {
            "startDateTime": start_time.in_timezone("UTC").to_iso8601_string(),
            "endDateTime": end_time.in_timezone("UTC").to_iso8601_string(),
            "$select": "subject,start,end,isAllDay",
            "$top": self.PAGE_SIZE,
        }
        headers = {"Prefer": f'outlook.timezone="{timezone}"'}

        events: List[CalendarEvent] = []
        while url:
            data = self._request("GET", url, params=params, headers=headers)
            events.extend(self._parse_events(data, timezone, calendar_name or ""))
            # nextLink already carries the query
            url = data.get("@odata.nextLink")
            params = None

        return events

    def _parse_events(
        self,
        response_data: Dict[str, Any],
        timezone: str,
        calendar_name: str,
    ) -> List[CalendarEvent]:
        """
        Parse a calendarView page into domain events.

        Item format:
        {
            "subject": "Standup",
            "isAllDay": false,
            "start": {"dateTime": "2024-11-25T09:00:00.0000000", "timeZone": "..."},
            "end": {"dateTime": "2024-11-25T09:15:00.0000000", "timeZone": "..."}
        }
        """
        events: List[CalendarEvent] = []

        for item in response_data.get("value", []):
            try:
                start = self._parse_datetime(item["start"]["dateTime"], timezone)
                end = self._parse_datetime(item["end"]["dateTime"], timezone)
                events.append(
                    CalendarEvent(
                        title=item.get("subject") or "",
                        time_range=TimeRange(start=start, end=end),
                        all_day=bool(item.get("isAllDay", False)),
                        calendar_name=calendar_name,
                    )
                )
            except (KeyError, ValueError) as e:
                logger.warning("Could not parse calendar item: %s", e)
                continue

        return events

    def _parse_datetime(self, datetime_str: str, timezone: str) -> DateTime:
        """Parse a Graph dateTime, which is local to the Prefer timezone."""
        # Graph sends seven fractional digits
        if "." in datetime_str:
            head, fraction = datetime_str.split(".", 1)
            datetime_str = f"{head}.{fraction[:6]}"

        dt = pendulum.parse(datetime_str, tz=timezone)
        if isinstance(dt, DateTime):
            return dt.in_timezone(timezone)

        raise ValueError(f"Could not parse datetime: {datetime_str}")

    def create_event(self, event: CalendarEvent) -> Dict[str, Any]:
        """Create the event in the cooking calendar."""
        calendar_id = self.ensure_calendar()

        body = event.notes
        if event.url:
            body = f"{body}\n\n{event.url}" if body else event.url

        payload = {
            "subject": event.title,
            "body": {"contentType": "text", "content": body},
            "start": {
                "dateTime": event.start.in_timezone(self.timezone).format("YYYY-MM-DD[T]HH:mm:ss"),
                "timeZone": self.timezone,
            },
            "end": {
                "dateTime": event.end.in_timezone(self.timezone).format("YYYY-MM-DD[T]HH:mm:ss"),
                "timeZone": self.timezone,
            },
            "isAllDay": False,
        }

        return self._request(
            "POST",
            f"{self.GRAPH_API_ENDPOINT}/me/calendars/{calendar_id}/events",
            json=payload,
        )

    async def get_events(
        self,
        start_time: DateTime,
        end_time: DateTime,
        timezone: str,
        calendar_name: Optional[str] = None,
    ) -> List[CalendarEvent]:
        return await asyncio.to_thread(
            self.list_events, start_time, end_time, timezone, calendar_name
        )

    async def save_event(self, event: CalendarEvent) -> None:
        await asyncio.to_thread(self.create_event, event)
        logger.debug("Saved '%s' to Microsoft Graph calendar '%s'", event.title, self.calendar_name)

