"""
Edamam Recipe Search API client and recipe file loading.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import requests

from ..domain.exceptions import RecipeSourceError
from ..domain.models import Recipe

logger = logging.getLogger(__name__)


RECIPE_URI_MARKER = "#recipe_"


def parse_recipe(payload: Dict[str, Any]) -> Recipe:
    """
    Convert an Edamam recipe object into a Recipe.

    Accepts the bare recipe, or a search hit / lookup response wrapping it
    under a ``recipe`` key.

    Raises:
        RecipeSourceError: If the payload has no label
    """
    data = payload.get("recipe", payload)

    if not isinstance(data, dict) or not data.get("label"):
        raise RecipeSourceError("Recipe payload is missing a label.")

    try:
        total_time = int(round(float(data.get("totalTime") or 0)))
    except (TypeError, ValueError):
        total_time = 0

    return Recipe(
        label=str(data["label"]),
        total_time=max(total_time, 0),
        url=data.get("url", "") or "",
        meal_types=list(data.get("mealType") or []),
        ingredient_lines=list(data.get("ingredientLines") or []),
        image=data.get("image", "") or "",
    )


def load_recipe_file(path: Path) -> Recipe:
    """Load a recipe stored as Edamam-shaped JSON on disk."""
    if not path.exists():
        raise FileNotFoundError(f"Recipe file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except json.JSONDecodeError as exc:
        raise RecipeSourceError(f"Invalid JSON in {path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise RecipeSourceError(f"Recipe file {path} must contain a JSON object.")

    return parse_recipe(payload)


def recipe_id_from_uri(identifier: str) -> str:
    """Extract the Edamam recipe id from a recipe URI, or return it unchanged."""
    if RECIPE_URI_MARKER in identifier:
        return identifier.split(RECIPE_URI_MARKER, 1)[1]
    return identifier


class EdamamClient:
    """
    Client for the Edamam Recipe Search API (v2).
    """

    DEFAULT_BASE_URL = "https://api.edamam.com/api/recipes/v2"

    def __init__(
        self,
        app_id: str,
        app_key: str,
        user_id: str = "",
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = 30,
    ):
        """
        Initialize the Edamam client.

        Args:
            app_id: Edamam application id
            app_key: Edamam application key
            user_id: Optional value for the Edamam-Account-User header
            base_url: Recipe Search API endpoint
            timeout: Request timeout in seconds
        """
        if not app_id or not app_key:
            raise RecipeSourceError("Edamam app_id and app_key must be configured.")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._auth_params = {"app_id": app_id, "app_key": app_key}
        self.headers = {"Accept": "application/json"}
        if user_id:
            self.headers["Edamam-Account-User"] = user_id

    def _get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = requests.get(
                url,
                params={"type": "public", **self._auth_params, **params},
                headers=self.headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            raise RecipeSourceError(f"Failed to fetch recipes from Edamam: {e}") from e
        except ValueError as e:
            raise RecipeSourceError(f"Edamam returned invalid JSON: {e}") from e

    def search(self, meal_type: str, query: str = "", limit: int = 20) -> List[Recipe]:
        """
        Search public recipes for a meal type.

        Args:
            meal_type: Edamam meal type (breakfast, lunch, dinner, snack, teatime)
            query: Optional free-text query
            limit: Maximum number of recipes to return

        Returns:
            Parsed recipes; hits that cannot be parsed are skipped
        """
        params: Dict[str, Any] = {"mealType": meal_type.capitalize()}
        if query:
            params["q"] = query
        else:
            params["random"] = "true"

        data = self._get(self.base_url, params)

        recipes: List[Recipe] = []
        for hit in data.get("hits", []):
            try:
                recipes.append(parse_recipe(hit))
            except RecipeSourceError as exc:
                logger.warning("Skipping Edamam hit: %s", exc)
                continue
            if len(recipes) >= limit:
                break

        return recipes

    def get_recipe(self, identifier: str) -> Recipe:
        """
        Fetch a single recipe by Edamam id or recipe URI.

        Raises:
            RecipeSourceError: If the request fails or the recipe is unknown
        """
        recipe_id = recipe_id_from_uri(identifier)
        data = self._get(f"{self.base_url}/{recipe_id}", {})
        return parse_recipe(data)
