"""
Tests for the RecipeSchedulerService orchestration layer.
"""

import asyncio
from typing import Dict, List, Optional

import pendulum
import pytest

from mealslot.domain.exceptions import MealSlotError
from mealslot.domain.models import CalendarEvent, NoSlotAvailable, Recipe, ScheduledSlot, TimeRange
from mealslot.domain.slot_finder import SlotFinder
from mealslot.services.scheduler import RecipeSchedulerService

TZ = "Europe/Berlin"


def _event(start: str, end: str, title: str = "Busy", all_day: bool = False, calendar: str = "Work") -> CalendarEvent:
    return CalendarEvent(
        title=title,
        time_range=TimeRange(
            start=pendulum.parse(start, tz=TZ),
            end=pendulum.parse(end, tz=TZ),
        ),
        all_day=all_day,
        calendar_name=calendar,
    )


class StubEventStore:
    """Minimal stub matching EventStoreReader and EventStoreWriter."""

    def __init__(self, events: List[CalendarEvent]):
        self._events = events
        self.saved: List[CalendarEvent] = []
        self.calls: List[Dict[str, Optional[str]]] = []

    async def get_events(self, start_time, end_time, timezone, calendar_name=None):
        self.calls.append(
            {
                "start": start_time.to_datetime_string(),
                "end": end_time.to_datetime_string(),
                "timezone": timezone,
                "calendar": calendar_name,
            }
        )
        window = TimeRange(start=start_time, end=end_time)
        return [
            event for event in self._events
            if event.time_range.overlaps(window)
            and (calendar_name is None or event.calendar_name == calendar_name)
        ]

    async def save_event(self, event):
        self.saved.append(event)


class PickFirst:
    def choice(self, seq):
        return seq[0]


def _build_service(events: List[CalendarEvent], with_writer: bool = True):
    store = StubEventStore(events)
    service = RecipeSchedulerService(
        event_reader=store,
        slot_finder=SlotFinder(rng=PickFirst()),
        event_writer=store if with_writer else None,
        calendar_name="Potluck",
    )
    return service, store


def test_fetch_busy_intervals_reads_whole_day_and_skips_all_day_events():
    events = [
        _event("2024-11-25 00:00", "2024-11-26 00:00", title="Holiday", all_day=True),
        _event("2024-11-25 17:00", "2024-11-25 18:00"),
        _event("2024-11-24 22:00", "2024-11-25 01:00", title="Late shift"),
        _event("2024-11-26 17:00", "2024-11-26 18:00", title="Tomorrow"),
    ]
    service, store = _build_service(events)

    busy = asyncio.run(
        service.fetch_busy_intervals(day=pendulum.parse("2024-11-25 13:37", tz=TZ), timezone=TZ)
    )

    assert store.calls[0]["start"] == "2024-11-25 00:00:00"
    assert store.calls[0]["end"] == "2024-11-26 00:00:00"
    assert len(busy) == 2
    assert all(isinstance(interval, TimeRange) for interval in busy)


def test_schedule_saves_event_in_cooking_calendar():
    events = [_event("2024-11-25 17:00", "2024-11-25 18:00")]
    service, store = _build_service(events)
    recipe = Recipe(
        label="Risotto",
        total_time=60,
        url="https://example.com/risotto",
        meal_types=["dinner"],
        ingredient_lines=["rice", "stock"],
    )

    outcome = asyncio.run(
        service.schedule(recipe=recipe, day=pendulum.parse("2024-11-25", tz=TZ), timezone=TZ)
    )

    assert isinstance(outcome, ScheduledSlot)
    assert outcome.start == pendulum.parse("2024-11-25 18:00", tz=TZ)
    assert len(store.saved) == 1
    saved = store.saved[0]
    assert saved.title == "Risotto"
    assert saved.calendar_name == "Potluck"
    assert saved.url == "https://example.com/risotto"
    assert saved.time_range == outcome.time_range


def test_schedule_without_free_slot_saves_nothing():
    events = [_event("2024-11-25 15:00", "2024-11-25 17:00")]
    service, store = _build_service(events)
    recipe = Recipe(label="Scones", total_time=60, meal_types=["teatime"])

    outcome = asyncio.run(
        service.schedule(recipe=recipe, day=pendulum.parse("2024-11-25", tz=TZ), timezone=TZ)
    )

    assert isinstance(outcome, NoSlotAvailable)
    assert store.saved == []


def test_plan_does_not_write():
    service, store = _build_service([])
    recipe = Recipe(label="Toast", total_time=10, meal_types=["breakfast"])

    outcome = asyncio.run(
        service.plan(recipe=recipe, day=pendulum.parse("2024-11-25", tz=TZ), timezone=TZ)
    )

    assert isinstance(outcome, ScheduledSlot)
    assert outcome.start == pendulum.parse("2024-11-25 06:00", tz=TZ)
    assert store.saved == []


def test_schedule_requires_writer():
    service, _ = _build_service([], with_writer=False)
    recipe = Recipe(label="Toast")

    with pytest.raises(MealSlotError):
        asyncio.run(
            service.schedule(recipe=recipe, day=pendulum.parse("2024-11-25", tz=TZ), timezone=TZ)
        )


def test_cooking_days_only_counts_cooking_calendar():
    events = [
        _event("2024-11-25 18:00", "2024-11-25 19:00", title="Risotto", calendar="Potluck"),
        _event("2024-11-27 12:00", "2024-11-27 12:30", title="Salad", calendar="Potluck"),
        _event("2024-11-26 09:00", "2024-11-26 10:00", title="Standup", calendar="Work"),
    ]
    service, store = _build_service(events)

    days = asyncio.run(
        service.cooking_days(
            start_date=pendulum.parse("2024-11-25", tz=TZ),
            end_date=pendulum.parse("2024-12-01", tz=TZ),
            timezone=TZ,
        )
    )

    assert days == {pendulum.date(2024, 11, 25), pendulum.date(2024, 11, 27)}
    assert store.calls[0]["calendar"] == "Potluck"
