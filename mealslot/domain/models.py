"""
Domain models for recipes, meal windows and calendar slots.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from pendulum import DateTime

DEFAULT_MEAL_CATEGORY = "dinner"
DEFAULT_DURATION_MINUTES = 60
SLOT_STEP_MINUTES = 30


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another (half-open semantics)."""
        return self.start < other.end and self.end > other.start

    def contains(self, other: "TimeRange") -> bool:
        """Check if another range lies completely inside this one."""
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class MealWindow:
    """
    Clock-time range, in whole hours, during which a meal may be cooked.

    The range is half-open: ``[start_hour, end_hour)``.
    """
    category: str
    start_hour: int
    end_hour: int

    def __post_init__(self):
        if not 0 <= self.start_hour <= 23 or not 0 <= self.end_hour <= 23:
            raise ValueError(
                f"Meal window hours must be between 0 and 23, "
                f"got {self.start_hour}-{self.end_hour}"
            )
        if self.start_hour >= self.end_hour:
            raise ValueError(
                f"Meal window for '{self.category}' must open before it closes"
            )

    @classmethod
    def for_category(
        cls,
        category: Optional[str],
        table: Optional[Mapping[str, "MealWindow"]] = None,
    ) -> "MealWindow":
        """
        Look up the window for a meal category.

        Unknown or missing categories fall back to the dinner window.
        """
        windows = MEAL_WINDOWS if table is None else table
        key = (category or DEFAULT_MEAL_CATEGORY).lower()
        if key in windows:
            return windows[key]
        return windows.get(DEFAULT_MEAL_CATEGORY, MEAL_WINDOWS[DEFAULT_MEAL_CATEGORY])

    def bounds_for(self, day: DateTime) -> TimeRange:
        """Get the concrete window on a given day, in that day's timezone."""
        start = day.set(hour=self.start_hour, minute=0, second=0, microsecond=0)
        end = day.set(hour=self.end_hour, minute=0, second=0, microsecond=0)
        return TimeRange(start=start, end=end)

    def __str__(self) -> str:
        return f"{self.start_hour:02d}:00 - {self.end_hour:02d}:00"


MEAL_WINDOWS: Dict[str, MealWindow] = {
    "breakfast": MealWindow("breakfast", 6, 10),
    "lunch": MealWindow("lunch", 11, 15),
    "dinner": MealWindow("dinner", 17, 21),
    "snack": MealWindow("snack", 14, 17),
    "teatime": MealWindow("teatime", 15, 17),
}


@dataclass
class Recipe:
    """
    The recipe data needed to schedule cooking it.

    ``total_time`` is the stated cook time in minutes; zero means unknown.
    """
    label: str
    total_time: int = 0
    url: str = ""
    meal_types: List[str] = field(default_factory=list)
    ingredient_lines: List[str] = field(default_factory=list)
    image: str = ""

    @property
    def meal_category(self) -> str:
        """First meal type, lowercased, or dinner when none is given."""
        if self.meal_types:
            return self.meal_types[0].lower()
        return DEFAULT_MEAL_CATEGORY

    def effective_duration_minutes(self, default: int = DEFAULT_DURATION_MINUTES) -> int:
        """Stated cook time, or ``default`` when it is zero or missing."""
        if self.total_time and self.total_time > 0:
            return int(self.total_time)
        return default

    def event_notes(self) -> str:
        """Free-text body for the calendar event."""
        ingredients = "\n".join(self.ingredient_lines)
        return (
            f"Recipe: {self.label}\n"
            f"Cook Time: {self.total_time} minutes\n"
            f"\n"
            f"Ingredients:\n"
            f"{ingredients}"
        )


@dataclass(frozen=True)
class CalendarEvent:
    """
    An entry in an external calendar.

    Events read from a store are only used for their ``time_range``; events
    written to a store carry the full description.
    """
    title: str
    time_range: TimeRange
    all_day: bool = False
    calendar_name: str = ""
    notes: str = ""
    url: str = ""

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    def format_display(self) -> str:
        """Format as ``HH:mm - HH:mm: title``."""
        return (
            f"{self.start.format('HH:mm')} - {self.end.format('HH:mm')}: "
            f"{self.title or 'No Title'}"
        )


@dataclass(frozen=True)
class ScheduledSlot:
    """
    A chosen, conflict-free slot for cooking a recipe.
    """
    title: str
    time_range: TimeRange
    window: MealWindow
    notes: str = ""
    url: str = ""

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    def to_event(self, calendar_name: str) -> CalendarEvent:
        """Build the event description to persist in the cooking calendar."""
        return CalendarEvent(
            title=self.title,
            time_range=self.time_range,
            all_day=False,
            calendar_name=calendar_name,
            notes=self.notes,
            url=self.url,
        )

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, DD.MM.YYYY | HH:mm - HH:mm (N min, meal)
        """
        start = self.time_range.start
        end = self.time_range.end
        date_str = start.format("dddd, DD.MM.YYYY")
        time_str = f"{start.format('HH:mm')} - {end.format('HH:mm')}"
        duration = self.time_range.duration_minutes()
        return f"{date_str} | {time_str} ({duration} min, {self.window.category})"


@dataclass(frozen=True)
class NoSlotAvailable:
    """
    Outcome when no candidate inside the meal window is free.

    This is an expected result, not an error.
    """
    title: str
    search_range: TimeRange
    meal_category: str

    @property
    def message(self) -> str:
        return (
            f"No free {self.meal_category} slot for '{self.title}' between "
            f"{self.search_range}. Please try another date."
        )
