# core/settings.py

from __future__ import annotations

from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SCHOOL_TIMEZONE = "America/New_York"
DEFAULT_RESYNC_INTERVAL_SECONDS = 45.0


class DismissalSettings(BaseSettings):
    """
    Session configuration for the dismissal dashboards.

    All fields are environment-driven with prefix DISMISSAL_ (case-insensitive), and may also
    come from a local `.env` file.
    """

    # --- logical day ---
    school_timezone: str = Field(
        DEFAULT_SCHOOL_TIMEZONE,
        description="IANA time zone used to resolve the school's calendar day.",
    )

    # --- resync policy ---
    resync_interval_seconds: float = Field(
        DEFAULT_RESYNC_INTERVAL_SECONDS,
        gt=0,
        description="Seconds between periodic full resyncs.",
    )
    incremental_enabled: bool = Field(
        True,
        description="If false, every notification triggers a full resync instead of a delta.",
    )
    resync_on_visibility: bool = True
    background_reads: bool = Field(
        True,
        description="Run resync reads on a worker thread instead of the draining thread.",
    )

    # --- write path ---
    default_actor: str = Field("spotter", min_length=1)

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="DISMISSAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("school_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown time zone: {value!r}") from None
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper()


@lru_cache
def get_settings() -> DismissalSettings:
    return DismissalSettings()
