"""
Adapters layer - External integrations (calendars, recipe sources).
"""

from .edamam_client import EdamamClient, load_recipe_file, parse_recipe
from .graph_authenticator import GraphAuthenticator
from .graph_calendar import GraphCalendarClient
from .ics_export import IcsEventWriter, event_to_ics
from .json_event_store import JsonEventStore

__all__ = [
    "EdamamClient",
    "GraphAuthenticator",
    "GraphCalendarClient",
    "IcsEventWriter",
    "JsonEventStore",
    "event_to_ics",
    "load_recipe_file",
    "parse_recipe",
]
