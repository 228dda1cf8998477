"""
Application services for scheduling recipes onto a calendar.

The service fetches the target day's events through an event store adapter,
delegates the slot choice to the domain-level ``SlotFinder`` and persists the
result through a writer. Calendar collaborators are described as protocols so
the real adapters and in-memory stubs are interchangeable.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Set

from pendulum import Date, DateTime

from ..domain.exceptions import MealSlotError
from ..domain.models import CalendarEvent, Recipe, ScheduledSlot, TimeRange
from ..domain.slot_finder import SlotFinder, SlotOutcome

logger = logging.getLogger(__name__)


class EventStoreReader(Protocol):
    """Read side of a calendar backend."""

    async def get_events(
        self,
        start_time: DateTime,
        end_time: DateTime,
        timezone: str,
        calendar_name: Optional[str] = None,
    ) -> List[CalendarEvent]:
        """Return events overlapping the window, optionally from one calendar."""


class EventStoreWriter(Protocol):
    """Write side of a calendar backend."""

    async def save_event(self, event: CalendarEvent) -> None:
        """Persist an event, raising EventStoreError on failure."""


class RecipeRepository(Protocol):
    """Source of recipe data."""

    def get_recipe(self, identifier: str) -> Recipe:
        """Return a single recipe by id or URI."""

    def search(self, meal_type: str, query: str = "", limit: int = 20) -> List[Recipe]:
        """Return recipes for a meal type."""


class RecipeSchedulerService:
    """
    Orchestrates busy-time retrieval, slot choice and event persistence.

    The slot finder itself never touches the calendar; this service fetches
    busy intervals right before the search so they are never stale by more
    than one call.
    """

    def __init__(
        self,
        event_reader: EventStoreReader,
        slot_finder: SlotFinder,
        event_writer: Optional[EventStoreWriter] = None,
        calendar_name: str = "Potluck",
    ) -> None:
        self._event_reader = event_reader
        self._event_writer = event_writer
        self._slot_finder = slot_finder
        self.calendar_name = calendar_name

    async def fetch_busy_intervals(
        self,
        *,
        day: DateTime,
        timezone: str,
    ) -> List[TimeRange]:
        """
        Fetch the timed events overlapping the given day.

        All-day events are dropped; events spilling over from a neighbouring
        day still count as busy.
        """
        start_of_day = day.in_timezone(timezone).start_of("day")
        end_of_day = start_of_day.add(days=1)

        events = await self._event_reader.get_events(
            start_time=start_of_day,
            end_time=end_of_day,
            timezone=timezone,
        )

        busy = [
            event.time_range
            for event in events
            if not event.all_day
        ]
        logger.debug(
            "Found %d busy interval(s) on %s (%d event(s) fetched)",
            len(busy),
            start_of_day.to_date_string(),
            len(events),
        )
        return busy

    async def plan(
        self,
        *,
        recipe: Recipe,
        day: DateTime,
        timezone: str,
    ) -> SlotOutcome:
        """Choose a slot for the recipe without writing anything."""
        target_day = day.in_timezone(timezone).start_of("day")
        busy_intervals = await self.fetch_busy_intervals(day=target_day, timezone=timezone)
        return self._slot_finder.find_slot(recipe, target_day, busy_intervals)

    async def schedule(
        self,
        *,
        recipe: Recipe,
        day: DateTime,
        timezone: str,
    ) -> SlotOutcome:
        """
        Choose a slot and store it in the cooking calendar.

        Returns NoSlotAvailable unchanged when the day is fully booked.
        """
        if self._event_writer is None:
            raise MealSlotError("No event writer configured; cannot save the scheduled recipe.")

        outcome = await self.plan(recipe=recipe, day=day, timezone=timezone)

        if isinstance(outcome, ScheduledSlot):
            event = outcome.to_event(self.calendar_name)
            await self._event_writer.save_event(event)
            logger.info("Scheduled '%s' at %s", recipe.label, outcome.time_range)
        else:
            logger.info("No available slot for '%s' on %s", recipe.label, day.to_date_string())

        return outcome

    async def cooking_days(
        self,
        *,
        start_date: DateTime,
        end_date: DateTime,
        timezone: str,
    ) -> Set[Date]:
        """Dates in the range that already have a cooking event."""
        events = await self._event_reader.get_events(
            start_time=start_date,
            end_time=end_date,
            timezone=timezone,
            calendar_name=self.calendar_name,
        )
        return {event.start.in_timezone(timezone).date() for event in events}
