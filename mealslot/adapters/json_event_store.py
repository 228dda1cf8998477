"""
File-backed calendar using a JSON list of events.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.exceptions import EventStoreError
from ..domain.models import CalendarEvent, TimeRange

logger = logging.getLogger(__name__)


class JsonEventStore:
    """
    Calendar stored as a JSON file.

    Each entry looks like::

        {
            "title": "Team lunch",
            "start": "2024-11-25T12:00:00+01:00",
            "end": "2024-11-25T13:00:00+01:00",
            "allDay": false,
            "calendar": "Work",
            "notes": "",
            "url": ""
        }

    A missing file is treated as an empty calendar.
    """

    def __init__(self, path: Path, timezone: str = "Europe/Berlin"):
        self.path = Path(path)
        self.timezone = timezone

    def _load_raw(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise EventStoreError(f"Could not read events from {self.path}: {exc}") from exc

        if not isinstance(data, list):
            raise EventStoreError(f"Event file {self.path} must contain a JSON list.")

        return data

    def _parse_event(self, raw: Dict[str, Any], timezone: str) -> CalendarEvent:
        start = pendulum.parse(raw["start"], tz=timezone)
        end = pendulum.parse(raw["end"], tz=timezone)
        return CalendarEvent(
            title=raw.get("title", ""),
            time_range=TimeRange(start=start, end=end),
            all_day=bool(raw.get("allDay", False)),
            calendar_name=raw.get("calendar", ""),
            notes=raw.get("notes", ""),
            url=raw.get("url", ""),
        )

    @staticmethod
    def _serialize_event(event: CalendarEvent) -> Dict[str, Any]:
        return {
            "title": event.title,
            "start": event.start.to_iso8601_string(),
            "end": event.end.to_iso8601_string(),
            "allDay": event.all_day,
            "calendar": event.calendar_name,
            "notes": event.notes,
            "url": event.url,
        }

    def load_events(self, timezone: Optional[str] = None) -> List[CalendarEvent]:
        """Load every parseable event in the file."""
        tz = timezone or self.timezone
        events: List[CalendarEvent] = []

        for raw in self._load_raw():
            try:
                events.append(self._parse_event(raw, tz))
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping invalid event %r in %s: %s", raw, self.path, exc)

        return events

    async def get_events(
        self,
        start_time: DateTime,
        end_time: DateTime,
        timezone: str,
        calendar_name: Optional[str] = None,
    ) -> List[CalendarEvent]:
        """
        Events overlapping ``[start_time, end_time)``.

        Args:
            start_time: Start of the time window
            end_time: End of the time window
            timezone: IANA timezone used for timestamps without an offset
            calendar_name: Only return events from this calendar

        Returns:
            Matching events sorted by start time
        """
        window = TimeRange(start=start_time, end=end_time)
        matching = [
            event
            for event in self.load_events(timezone)
            if event.time_range.overlaps(window)
            and (calendar_name is None or event.calendar_name == calendar_name)
        ]
        return sorted(matching, key=lambda e: e.start)

    async def save_event(self, event: CalendarEvent) -> None:
        """Append an event to the file."""
        data = self._load_raw()
        data.append(self._serialize_event(event))

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as exc:
            raise EventStoreError(f"Could not save event to {self.path}: {exc}") from exc

        logger.debug("Saved event '%s' to %s", event.title, self.path)
