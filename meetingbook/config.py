"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
from pathlib import Path
from typing import Any, Dict

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .services.context import DEFAULT_LENGTH_COLLECTION, DEFAULT_RESOURCE, DEFAULT_TIMETABLE_COLLECTION


class DefaultsConfig(BaseModel):
    """Default settings for requests."""
    length_minutes: int = 30

    @field_validator("length_minutes")
    @classmethod
    def validate_length(cls, value: int) -> int:
        """Ensure meeting length is positive."""
        if value <= 0:
            raise ValueError("length_minutes must be greater than zero")
        return value


class CollectionsConfig(BaseModel):
    """Names of the store collections."""
    bookings: str = DEFAULT_RESOURCE
    timetables: str = DEFAULT_TIMETABLE_COLLECTION
    lengths: str = DEFAULT_LENGTH_COLLECTION


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Berlin"
    store_file: Path = Path("meetingbook.json")
    log_level: str = "WARNING"
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    collections: CollectionsConfig = Field(default_factory=CollectionsConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

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

        return cls(**data)

    def options_document(self) -> Dict[str, Any]:
        """Render the options document read by ``RequestContext``."""
        return {
            "nouns": {
                self.collections.bookings: {
                    "options": {
                        "timeTableColl": self.collections.timetables,
                        "intervalColl": self.collections.lengths,
                    }
                }
            }
        }


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
