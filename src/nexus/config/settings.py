"""Nexus configuration settings using pydantic-settings."""

from functools import cached_property
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration settings for the Nexus tracking agent.

    Settings are loaded from environment variables with the NEXUS_ prefix.
    For example, NEXUS_SYNC_INTERVAL=60 sets sync_interval to 60.
    """

    model_config = SettingsConfigDict(
        env_prefix="NEXUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server settings
    base_url: str = "https://api.example.com/nexus/"

    # Sync loop
    sync_interval: int = 30  # seconds between normal ticks
    max_backoff_interval: int = 300  # cap on the wait after failed ticks
    burst_count: int = 3
    burst_delay: float = 0.5  # seconds between burst posts

    # Per-call deadlines (seconds)
    status_timeout: float = 8.0
    update_timeout: float = 10.0
    aggressive_timeout: float = 15.0
    request_timeout: float = 10.0
    location_fix_timeout: float = 10.0
    burst_fix_timeout: float = 5.0

    startup_delay: float = 0.5

    # File paths
    data_dir: Path = Path("~/.local/share/nexus")

    # Logging
    log_level: str = "INFO"
    log_file: Path | None = None

    @field_validator("sync_interval", "max_backoff_interval")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        """Ensure intervals are positive."""
        if v < 1:
            raise ValueError("intervals must be at least 1 second")
        return v

    @field_validator("burst_count")
    @classmethod
    def validate_burst_count(cls, v: int) -> int:
        if v < 1:
            raise ValueError("burst_count must be at least 1")
        return v

    @field_validator(
        "burst_delay",
        "status_timeout",
        "update_timeout",
        "aggressive_timeout",
        "request_timeout",
        "location_fix_timeout",
        "burst_fix_timeout",
    )
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v < 0:
            raise ValueError("timeouts and delays cannot be negative")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def validate_backoff_cap(self) -> "Settings":
        if self.max_backoff_interval < self.sync_interval:
            raise ValueError("max_backoff_interval must not be below sync_interval")
        return self

    @cached_property
    def data_path(self) -> Path:
        """Return expanded data directory path."""
        return self.data_dir.expanduser()

    @property
    def session_file(self) -> Path:
        return self.data_path / "session.yaml"

    @property
    def pid_file(self) -> Path:
        return self.data_path / "agent.pid"
