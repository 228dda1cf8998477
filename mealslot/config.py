"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Dict, List, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.models import DEFAULT_MEAL_CATEGORY, MEAL_WINDOWS, MealWindow


class SchedulingConfig(BaseModel):
    """Settings for the slot search."""
    calendar_name: str = "Potluck"
    meal_windows: Dict[str, List[int]] = Field(default_factory=dict)

    @field_validator("calendar_name")
    @classmethod
    def validate_calendar_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("calendar_name must not be empty")
        return value.strip()

    @field_validator("meal_windows")
    @classmethod
    def validate_meal_windows(cls, value: Dict[str, List[int]]) -> Dict[str, List[int]]:
        """Ensure every override is a [start_hour, end_hour] pair."""
        normalized: Dict[str, List[int]] = {}
        for category, hours in value.items():
            if category.lower() == DEFAULT_MEAL_CATEGORY:
                raise ValueError(
                    f"The '{DEFAULT_MEAL_CATEGORY}' window is the fallback for "
                    f"unknown meal types and cannot be overridden"
                )
            if len(hours) != 2:
                raise ValueError(
                    f"Meal window for '{category}' must be [start_hour, end_hour], got {hours}"
                )
            # Raises ValueError for out-of-range or inverted hours
            MealWindow(category.lower(), hours[0], hours[1])
            normalized[category.lower()] = list(hours)
        return normalized


class EdamamConfig(BaseModel):
    """Credentials for the Edamam recipe search API."""
    app_id: str = ""
    app_key: str = ""
    user_id: str = ""
    base_url: str = "https://api.edamam.com/api/recipes/v2"

    def is_configured(self) -> bool:
        return bool(self.app_id and self.app_key)


class GraphConfig(BaseModel):
    """Azure AD application used for the Microsoft Graph calendar backend."""
    client_id: str
    tenant_id: str

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Berlin"
    events_file: Path = Path("calendar.json")
    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)
    edamam: EdamamConfig = Field(default_factory=EdamamConfig)
    graph: Optional[GraphConfig] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    def meal_window_table(self) -> Dict[str, MealWindow]:
        """Built-in meal windows with configured overrides applied."""
        table = dict(MEAL_WINDOWS)
        for category, (start_hour, end_hour) in self.scheduling.meal_windows.items():
            table[category] = MealWindow(category, start_hour, end_hour)
        return table

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)

        # Relative event files live next to the config file
        if not config.events_file.is_absolute():
            config.events_file = config_path.parent / config.events_file

        return config


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of mealslot/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
