"""
Core business logic for placing a recipe into a free calendar slot.

Pure domain logic without any external dependencies (no API calls, no
database, no I/O). The caller supplies the busy intervals for the day and
persists the result.
"""

import random
from typing import List, Mapping, Optional, Sequence, Union

from pendulum import DateTime

from .models import (
    DEFAULT_DURATION_MINUTES,
    MEAL_WINDOWS,
    SLOT_STEP_MINUTES,
    MealWindow,
    NoSlotAvailable,
    Recipe,
    ScheduledSlot,
    TimeRange,
)

SlotOutcome = Union[ScheduledSlot, NoSlotAvailable]


class SlotFinder:
    """
    Finds a conflict-free start time for a recipe within its meal window.

    Algorithm:
    1. Resolve the meal window from the recipe's first meal type
    2. Enumerate start times every half hour from the window start
    3. Drop candidates whose end would pass the window end
    4. Drop candidates that overlap any busy interval
    5. Pick one of the remaining candidates at random
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        meal_windows: Optional[Mapping[str, MealWindow]] = None,
    ):
        self._rng = rng or random.Random()
        self.meal_windows = dict(meal_windows) if meal_windows else dict(MEAL_WINDOWS)

    def resolve_window(self, recipe: Recipe) -> MealWindow:
        """Meal window for the recipe, dinner when the category is unknown."""
        return MealWindow.for_category(recipe.meal_category, table=self.meal_windows)

    def resolve_duration(self, recipe: Recipe) -> int:
        """Cook time in minutes, 60 when the recipe gives none."""
        return recipe.effective_duration_minutes(default=DEFAULT_DURATION_MINUTES)

    def candidate_starts(self, recipe: Recipe, day: DateTime) -> List[DateTime]:
        """
        All grid-aligned start times whose end still fits inside the window.

        The result only depends on the recipe and the day, so repeated calls
        return the same ordered list.
        """
        bounds = self.resolve_window(recipe).bounds_for(day)
        duration = self.resolve_duration(recipe)

        candidates: List[DateTime] = []
        current = bounds.start

        while current < bounds.end:
            potential_end = current.add(minutes=duration)
            if potential_end > bounds.end:
                break
            candidates.append(current)
            current = current.add(minutes=SLOT_STEP_MINUTES)

        return candidates

    def available_starts(
        self,
        recipe: Recipe,
        day: DateTime,
        busy_intervals: Sequence[TimeRange],
    ) -> List[DateTime]:
        """Candidate start times that do not overlap any busy interval."""
        duration = self.resolve_duration(recipe)

        available: List[DateTime] = []
        for start in self.candidate_starts(recipe, day):
            candidate = TimeRange(start=start, end=start.add(minutes=duration))
            if not any(candidate.overlaps(busy) for busy in busy_intervals):
                available.append(start)

        return available

    def find_slot(
        self,
        recipe: Recipe,
        day: DateTime,
        busy_intervals: Sequence[TimeRange],
    ) -> SlotOutcome:
        """
        Choose a free slot for the recipe on the given day.

        Args:
            recipe: Recipe to schedule
            day: Any datetime on the target day, in the calendar's timezone
            busy_intervals: Existing commitments on that day

        Returns:
            ScheduledSlot, or NoSlotAvailable when every candidate conflicts
        """
        window = self.resolve_window(recipe)
        available = self.available_starts(recipe, day, busy_intervals)

        if not available:
            return NoSlotAvailable(
                title=recipe.label,
                search_range=window.bounds_for(day),
                meal_category=window.category,
            )

        start = self._rng.choice(available)
        end = start.add(minutes=self.resolve_duration(recipe))

        return ScheduledSlot(
            title=recipe.label,
            time_range=TimeRange(start=start, end=end),
            window=window,
            notes=recipe.event_notes(),
            url=recipe.url,
        )
