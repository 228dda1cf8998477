"""Write scheduled recipes as ICS calendar files.

For users without a synced calendar backend: every scheduled recipe becomes a
single-event ``.ics`` file that any calendar application can import.
"""

import hashlib
import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from icalendar import Calendar, Event

from ..domain.exceptions import EventStoreError
from ..domain.models import CalendarEvent

logger = logging.getLogger(__name__)


def _event_uid(event: CalendarEvent) -> str:
    digest = hashlib.sha1(
        f"{event.title}|{event.start.to_iso8601_string()}".encode("utf-8")
    ).hexdigest()[:16]
    return f"{digest}@mealslot"


def _as_utc(dt: datetime) -> datetime:
    return datetime.fromtimestamp(dt.timestamp(), tz=timezone.utc)


def _slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug or "recipe"


def event_to_ics(event: CalendarEvent) -> bytes:
    """Serialize a single event as an ICS document."""
    cal = Calendar()
    cal.add("prodid", "-//mealslot//Cooking Schedule//EN")
    cal.add("version", "2.0")
    if event.calendar_name:
        cal.add("x-wr-calname", event.calendar_name)

    ics_event = Event()
    ics_event.add("uid", _event_uid(event))
    ics_event.add("summary", event.title)
    ics_event.add("dtstart", _as_utc(event.start))
    ics_event.add("dtend", _as_utc(event.end))
    if event.notes:
        ics_event.add("description", event.notes)
    if event.url:
        ics_event.add("url", event.url)

    cal.add_component(ics_event)
    return cal.to_ical()


class IcsEventWriter:
    """Event writer that drops one ``.ics`` file per event into a directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, event: CalendarEvent) -> Path:
        filename = f"{event.start.format('YYYY-MM-DD_HHmm')}_{_slugify(event.title)}.ics"
        return self.directory / filename

    async def save_event(self, event: CalendarEvent) -> None:
        path = self.path_for(event)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_bytes(event_to_ics(event))
        except OSError as exc:
            raise EventStoreError(f"Could not write {path}: {exc}") from exc
        logger.info("Wrote %s", path)
