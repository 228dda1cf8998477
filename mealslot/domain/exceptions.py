"""
Domain-specific exception hierarchy for the meal slot scheduler.
"""


class MealSlotError(Exception):
    """Base class for all application-level errors."""


class EventStoreError(MealSlotError):
    """Raised when calendar events cannot be read, parsed or saved."""


class RecipeSourceError(MealSlotError):
    """Raised when a recipe cannot be fetched or parsed."""


class AuthenticationError(MealSlotError):
    """Raised when authentication or token handling fails."""
