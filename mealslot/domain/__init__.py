"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    MEAL_WINDOWS,
    CalendarEvent,
    MealWindow,
    NoSlotAvailable,
    Recipe,
    ScheduledSlot,
    TimeRange,
)
from .slot_finder import SlotFinder

__all__ = [
    "MEAL_WINDOWS",
    "CalendarEvent",
    "MealWindow",
    "NoSlotAvailable",
    "Recipe",
    "ScheduledSlot",
    "TimeRange",
    "SlotFinder",
]
