"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.booking_rules import BookingRules
from .domain.exceptions import ConfigError
from .domain.travel_time import TravelTimeConfig

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class SlotsConfig(BaseModel):
    """Slot generation settings."""
    interval_minutes: Optional[int] = None  # None or shorter than the service: step by the service duration
    default_service_duration_minutes: int = 60

    @field_validator("interval_minutes", "default_service_duration_minutes")
    @classmethod
    def validate_positive(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value <= 0:
            raise ValueError("Slot lengths must be greater than zero")
        return value


class TravelConfig(BaseModel):
    """Travel-time estimation between bookings."""
    average_speed_kmh: float = 50.0
    min_buffer_minutes: int = 60
    default_buffer_minutes: int = 60
    margin_factor: float = 1.2

    @field_validator("average_speed_kmh", "min_buffer_minutes", "default_buffer_minutes")
    @classmethod
    def validate_positive(cls, value):
        if value <= 0:
            raise ValueError("Travel settings must be greater than zero")
        return value

    @field_validator("margin_factor")
    @classmethod
    def validate_margin(cls, value: float) -> float:
        if value < 1:
            raise ValueError("margin_factor must be at least 1")
        return value

    def to_domain(self) -> TravelTimeConfig:
        return TravelTimeConfig(
            average_speed_kmh=self.average_speed_kmh,
            min_buffer_minutes=self.min_buffer_minutes,
            default_buffer_minutes=self.default_buffer_minutes,
            margin_factor=self.margin_factor,
        )


class DueForServiceConfig(BaseModel):
    upcoming_threshold_days: int = 14

    @field_validator("upcoming_threshold_days")
    @classmethod
    def validate_threshold(cls, value: int) -> int:
        if value < 0:
            raise ValueError("upcoming_threshold_days must not be negative")
        return value


class BookingRulesConfig(BaseModel):
    """Limits for a single booking's time range."""
    min_duration_minutes: int = 15
    max_duration_minutes: int = 480
    business_hours_start: int = 8
    business_hours_end: int = 18

    @field_validator("business_hours_start", "business_hours_end")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 24."""
        if not 0 <= v <= 24:
            raise ValueError(f"Hour must be between 0 and 24, got {v}")
        return v

    @model_validator(mode="after")
    def validate_ranges(self) -> "BookingRulesConfig":
        if self.business_hours_end <= self.business_hours_start:
            raise ValueError("business_hours_end must be later than business_hours_start")
        if self.min_duration_minutes <= 0:
            raise ValueError("min_duration_minutes must be greater than zero")
        if self.max_duration_minutes < self.min_duration_minutes:
            raise ValueError("max_duration_minutes must not be below min_duration_minutes")
        return self

    def to_domain(self) -> BookingRules:
        return BookingRules(
            min_duration_minutes=self.min_duration_minutes,
            max_duration_minutes=self.max_duration_minutes,
            business_hours_start=self.business_hours_start,
            business_hours_end=self.business_hours_end,
        )


class GeocodingConfig(BaseModel):
    """Google Geocoding API access."""
    api_key: Optional[str] = None
    region: str = "se"
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    cache_ttl_seconds: float = 86400
    timeout_seconds: float = 10.0

    @field_validator("max_retries")
    @classmethod
    def validate_retries(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_retries must be at least 1")
        return value

    @field_validator("retry_delay_seconds", "cache_ttl_seconds", "timeout_seconds")
    @classmethod
    def validate_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("Durations must not be negative")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Stockholm"
    log_level: str = "INFO"
    data_file: Optional[Path] = None
    slots: SlotsConfig = Field(default_factory=SlotsConfig)
    travel: TravelConfig = Field(default_factory=TravelConfig)
    due_for_service: DueForServiceConfig = Field(default_factory=DueForServiceConfig)
    booking_rules: BookingRulesConfig = Field(default_factory=BookingRulesConfig)
    geocoding: GeocodingConfig = Field(default_factory=GeocodingConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    def resolve_data_file(self, config_path: Path) -> Optional[Path]:
        """The data file, with relative paths read against the config file's folder."""
        if self.data_file is None:
            return None
        if self.data_file.is_absolute():
            return self.data_file
        return config_path.parent / self.data_file

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
            ConfigError: If the YAML is malformed or not a mapping (a ValueError)
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

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    config_path = Path.cwd() / "config.yaml"

    if not config_path.exists():
        # Fall back to the project root (parent of equislot/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
