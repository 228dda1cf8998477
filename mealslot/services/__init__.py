"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .scheduler import (
    EventStoreReader,
    EventStoreWriter,
    RecipeRepository,
    RecipeSchedulerService,
)

__all__ = [
    "EventStoreReader",
    "EventStoreWriter",
    "RecipeRepository",
    "RecipeSchedulerService",
]
