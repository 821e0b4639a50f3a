"""
Configuration management using Pydantic models loaded from YAML.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class DefaultsConfig(BaseModel):
    """Default settings for slot calculation."""
    slot_interval_minutes: int = 30
    service_duration_minutes: int = 30
    fallback_appointment_duration_minutes: int = 60

    @field_validator(
        "slot_interval_minutes",
        "service_duration_minutes",
        "fallback_appointment_duration_minutes",
    )
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure durations are positive."""
        if value <= 0:
            raise ValueError("durations must be greater than zero")
        return value


class BookingConfig(BaseModel):
    """Rules for which days and appointments count."""
    horizon_months: int = 2
    ignore_cancelled_appointments: bool = True

    @field_validator("horizon_months")
    @classmethod
    def validate_horizon(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"horizon_months must not be negative, got {value}")
        return value


class ApiConfig(BaseModel):
    """Connection to the platform's REST API."""
    base_url: str = "http://localhost:5000"
    timeout_seconds: float = 10


class ServiceConfig(BaseModel):
    """A service offered by the business."""
    name: str
    duration_minutes: int

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Services last at least five minutes."""
        if value < 5:
            raise ValueError(f"duration_minutes must be at least 5, got {value}")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "America/Sao_Paulo"
    business: Optional[str] = None  # id or slug used when the CLI gets none
    data_file: Optional[Path] = None
    log_level: str = "INFO"
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    booking: BookingConfig = Field(default_factory=BookingConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    services: List[ServiceConfig] = Field(default_factory=list)

    @field_validator("services")
    @classmethod
    def validate_services(cls, value: List[ServiceConfig]) -> List[ServiceConfig]:
        """Ensure service names are unique."""
        seen: set[str] = set()
        for service in value:
            key = service.name.lower()
            if key in seen:
                raise ValueError(f"Duplicate service name detected: {service.name}")
            seen.add(key)
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
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

        config = cls(**data)

        # Relative data files are resolved against the config file
        if config.data_file is not None and not config.data_file.is_absolute():
            config.data_file = config_path.parent / config.data_file

        return config

    def find_service(self, name: str) -> ServiceConfig | None:
        """Find a service by its (case-insensitive) name."""
        for service in self.services:
            if service.name.lower() == name.lower():
                return service
        return None

    def resolve_service_duration(self, identifier: Optional[str]) -> int:
        """
        Resolve a service identifier (name or minutes) to a duration.

        Args:
            identifier: Service name, a bare number of minutes, or None for the default

        Returns:
            Duration in minutes

        Raises:
            ValueError: If identifier cannot be resolved
        """
        if identifier is None:
            return self.defaults.service_duration_minutes

        if identifier.strip().isdigit():
            minutes = int(identifier)
            if minutes <= 0:
                raise ValueError("Service duration must be greater than zero")
            return minutes

        service = self.find_service(identifier)
        if service:
            return service.duration_minutes

        raise ValueError(
            f"Unknown service: '{identifier}'. "
            f"Use a configured service name or a duration in minutes."
        )


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


def configure_logging(level: str = "INFO") -> None:
    """Set up root logging for command-line use."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
