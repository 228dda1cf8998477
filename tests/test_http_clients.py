"""
Tests for the HTTP adapters with ``requests`` patched out.
"""

import asyncio
from unittest.mock import MagicMock, patch

import pendulum
import pytest
import requests

from mealslot.adapters.edamam_client import EdamamClient
from mealslot.adapters.graph_authenticator import GraphAuthenticator
from mealslot.adapters.graph_calendar import GraphCalendarClient
from mealslot.domain.exceptions import AuthenticationError, EventStoreError, RecipeSourceError
from mealslot.domain.models import CalendarEvent, TimeRange

TZ = "Europe/Berlin"


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.content = b"{}"
    response.raise_for_status.return_value = None
    return response


class TestEdamamClient:
    """Tests for EdamamClient."""

    def test_requires_credentials(self):
        with pytest.raises(RecipeSourceError):
            EdamamClient(app_id="", app_key="")

    @patch("mealslot.adapters.edamam_client.requests.get")
    def test_search(self, mock_get):
        mock_get.return_value = _response(
            {
                "hits": [
                    {"recipe": {"label": "Pancakes", "totalTime": 20, "mealType": ["breakfast"]}},
                    {"recipe": {"totalTime": 5}},
                    {"recipe": {"label": "Waffles", "totalTime": 0, "mealType": ["breakfast"]}},
                    {"recipe": {"label": "Crepes", "totalTime": 30, "mealType": ["breakfast"]}},
                ]
            }
        )
        client = EdamamClient(app_id="id", app_key="key", user_id="me")

        recipes = client.search("breakfast", limit=2)

        assert [recipe.label for recipe in recipes] == ["Pancakes", "Waffles"]
        _, kwargs = mock_get.call_args
        assert kwargs["params"]["mealType"] == "Breakfast"
        assert kwargs["params"]["app_id"] == "id"
        assert kwargs["params"]["type"] == "public"
        assert kwargs["params"]["random"] == "true"
        assert kwargs["headers"]["Edamam-Account-User"] == "me"

    @patch("mealslot.adapters.edamam_client.requests.get")
    def test_get_recipe_by_uri(self, mock_get):
        mock_get.return_value = _response({"recipe": {"label": "Stew", "totalTime": 120}})
        client = EdamamClient(app_id="id", app_key="key")

        recipe = client.get_recipe("http://www.edamam.com/ontologies/edamam.owl#recipe_xyz")

        assert recipe.label == "Stew"
        args, _ = mock_get.call_args
        assert args[0] == "https://api.edamam.com/api/recipes/v2/xyz"

    @patch("mealslot.adapters.edamam_client.requests.get")
    def test_http_error_is_wrapped(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("offline")
        client = EdamamClient(app_id="id", app_key="key")

        with pytest.raises(RecipeSourceError, match="offline"):
            client.search("dinner")


class TestGraphCalendarClient:
    """Tests for GraphCalendarClient."""

    @patch("mealslot.adapters.graph_calendar.requests.request")
    def test_get_events_parses_and_follows_pages(self, mock_request):
        mock_request.side_effect = [
            _response(
                {
                    "value": [
                        {
                            "subject": "Standup",
                            "isAllDay": False,
                            "start": {"dateTime": "2024-11-25T09:00:00.0000000", "timeZone": TZ},
                            "end": {"dateTime": "2024-11-25T09:15:00.0000000", "timeZone": TZ},
                        },
                        {"subject": "Broken", "start": {}},
                    ],
                    "@odata.nextLink": "https://graph.microsoft.com/v1.0/me/calendarView?page=2",
                }
            ),
            _response(
                {
                    "value": [
                        {
                            "subject": "Holiday",
                            "isAllDay": True,
                            "start": {"dateTime": "2024-11-25T00:00:00.0000000", "timeZone": TZ},
                            "end": {"dateTime": "2024-11-26T00:00:00.0000000", "timeZone": TZ},
                        }
                    ]
                }
            ),
        ]
        client = GraphCalendarClient(access_token="token", timezone=TZ)

        events = asyncio.run(
            client.get_events(
                pendulum.parse("2024-11-25", tz=TZ),
                pendulum.parse("2024-11-26", tz=TZ),
                TZ,
            )
        )

        assert [event.title for event in events] == ["Standup", "Holiday"]
        assert events[0].start == pendulum.parse("2024-11-25 09:00", tz=TZ)
        assert events[1].all_day
        second_call = mock_request.call_args_list[1]
        assert second_call.args[1].endswith("page=2")
        assert second_call.kwargs["params"] is None
        assert second_call.kwargs["headers"]["Prefer"] == f'outlook.timezone="{TZ}"'

    @patch("mealslot.adapters.graph_calendar.requests.request")
    def test_save_event_creates_calendar_when_missing(self, mock_request):
        mock_request.side_effect = [
            _response({"value": [{"id": "cal-1", "name": "Work"}]}),
            _response({"id": "cal-2", "name": "Potluck"}),
            _response({"id": "event-1"}),
        ]
        client = GraphCalendarClient(access_token="token", calendar_name="Potluck", timezone=TZ)
        event = CalendarEvent(
            title="Risotto",
            time_range=TimeRange(
                start=pendulum.parse("2024-11-25 18:00", tz=TZ),
                end=pendulum.parse("2024-11-25 19:00", tz=TZ),
            ),
            notes="Recipe: Risotto",
            url="https://example.com/risotto",
        )

        asyncio.run(client.save_event(event))

        create_calendar, create_event = mock_request.call_args_list[1:]
        assert create_calendar.args == ("POST", "https://graph.microsoft.com/v1.0/me/calendars")
        assert create_calendar.kwargs["json"] == {"name": "Potluck"}
        assert create_event.args[1].endswith("/me/calendars/cal-2/events")
        payload = create_event.kwargs["json"]
        assert payload["subject"] == "Risotto"
        assert payload["start"] == {"dateTime": "2024-11-25T18:00:00", "timeZone": TZ}
        assert payload["body"]["content"] == "Recipe: Risotto\n\nhttps://example.com/risotto"

    @patch("mealslot.adapters.graph_calendar.requests.request")
    def test_unknown_calendar_has_no_events(self, mock_request):
        mock_request.return_value = _response({"value": []})
        client = GraphCalendarClient(access_token="token", timezone=TZ)

        events = client.list_events(
            pendulum.parse("2024-11-25", tz=TZ),
            pendulum.parse("2024-11-26", tz=TZ),
            TZ,
            calendar_name="Potluck",
        )

        assert events == []
        assert mock_request.call_count == 1

    @patch("mealslot.adapters.graph_calendar.requests.request")
    def test_http_error_is_wrapped(self, mock_request):
        mock_request.side_effect = requests.exceptions.HTTPError("401 Unauthorized")
        client = GraphCalendarClient(access_token="token", timezone=TZ)

        with pytest.raises(EventStoreError, match="401"):
            asyncio.run(
                client.get_events(
                    pendulum.parse("2024-11-25", tz=TZ),
                    pendulum.parse("2024-11-26", tz=TZ),
                    TZ,
                )
            )


class TestGraphAuthenticator:
    """Tests for GraphAuthenticator with MSAL and keyring patched out."""

    @patch("mealslot.adapters.graph_authenticator.msal.PublicClientApplication")
    @patch("mealslot.adapters.graph_authenticator.keyring")
    def test_silent_token_from_cache(self, mock_keyring, mock_app_cls, tmp_path):
        mock_keyring.get_password.return_value = None
        mock_app = mock_app_cls.return_value
        mock_app.get_accounts.return_value = [{"username": "cook@example.com"}]
        mock_app.acquire_token_silent.return_value = {"access_token": "cached-token"}

        authenticator = GraphAuthenticator(
            client_id="client",
            tenant_id="tenant",
            cache_file=tmp_path / "cache.json",
        )

        assert authenticator.get_access_token() == "cached-token"
        assert authenticator.cache_backend == "keyring"
        assert authenticator.authority == "https://login.microsoftonline.com/tenant"
        mock_app.initiate_device_flow.assert_not_called()

    @patch("mealslot.adapters.graph_authenticator.msal.PublicClientApplication")
    @patch("mealslot.adapters.graph_authenticator.keyring")
    def test_failed_device_flow_raises(self, mock_keyring, mock_app_cls, tmp_path):
        mock_keyring.get_password.return_value = None
        mock_app = mock_app_cls.return_value
        mock_app.get_accounts.return_value = []
        mock_app.initiate_device_flow.return_value = {"error_description": "bad client"}

        authenticator = GraphAuthenticator(
            client_id="client",
            tenant_id="tenant",
            cache_file=tmp_path / "cache.json",
        )

        with pytest.raises(AuthenticationError, match="bad client"):
            authenticator.get_access_token()

    @patch("mealslot.adapters.graph_authenticator.msal.PublicClientApplication")
    @patch("mealslot.adapters.graph_authenticator.keyring")
    def test_clear_cache_removes_file(self, mock_keyring, mock_app_cls, tmp_path):
        mock_keyring.get_password.return_value = None
        cache_file = tmp_path / "cache.json"
        cache_file.write_text("", encoding="utf-8")

        authenticator = GraphAuthenticator(client_id="client", tenant_id="tenant", cache_file=cache_file)
        authenticator.clear_cache()

        assert not cache_file.exists()
        mock_keyring.delete_password.assert_called_once_with("mealslot", "client:tenant")
        # A fresh MSAL app is built around the emptied cache
        assert mock_app_cls.call_count == 2
