"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List, Literal, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import ConfigError
from .domain.models import ReservationStatus


class ScheduleConfig(BaseModel):
    """Salon-wide rules layered on top of each employee's windows."""
    closed_weekdays: List[int] = Field(default_factory=lambda: [0])  # Monday
    slot_step_minutes: int = 60
    default_duration_minutes: int = 60

    @field_validator("closed_weekdays")
    @classmethod
    def validate_closed_weekdays(cls, value: List[int]) -> List[int]:
        """Weekdays are 0 (Monday) to 6 (Sunday); stored sorted and unique."""
        out_of_range = sorted({day for day in value if not 0 <= day <= 6})
        if out_of_range:
            raise ValueError(f"closed_weekdays must be between 0 and 6, got {out_of_range}")
        return sorted(set(value))

    @field_validator("slot_step_minutes", "default_duration_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value


class BookingConfig(BaseModel):
    """Booking policy."""
    initial_status: Literal["pending", "confirmed"] = "pending"
    allow_past_dates: bool = False

    def get_initial_status(self) -> ReservationStatus:
        return ReservationStatus(self.initial_status)


class ServicesConfig(BaseModel):
    """How service durations are stored."""
    duration_unit: Literal["minutes", "hours"] = "minutes"


class StoreConfig(BaseModel):
    """Record store connection settings."""
    backend: Literal["memory", "rest"] = "memory"
    data_file: Optional[Path] = None
    url: str = ""
    api_key: str = ""
    timeout_seconds: float = 10.0

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return value

    @model_validator(mode="after")
    def validate_backend_settings(self) -> "StoreConfig":
        """Ensure the selected backend has what it needs to connect."""
        if self.backend == "rest" and (not self.url or not self.api_key):
            raise ValueError("The rest backend requires both url and api_key")
        return self


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "UTC"
    log_level: str = "WARNING"
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    booking: BookingConfig = Field(default_factory=BookingConfig)
    services: ServicesConfig = Field(default_factory=ServicesConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

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
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        A relative ``store.data_file`` is resolved against the directory of
        the config file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigError: If the YAML cannot be parsed
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
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigError("Config file must contain a mapping at the root level.")

        config = cls(**data)
        data_file = config.store.data_file
        if data_file is not None and not data_file.is_absolute():
            config.store.data_file = config_path.parent / data_file
        return config


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
