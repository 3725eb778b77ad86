from pathlib import Path
from typing import Annotated, List, Optional, Tuple

from dotenv import find_dotenv
from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Versioned storage keys. Bump the suffix when the record layout changes.
BOOKINGS_KEY = "w4h_bookings_v1"
PEOPLE_KEY = "w4h_people_v1"

BACKENDS = ("local", "memory", "sql", "remote")


def parse_hour_range(value: str) -> Tuple[int, ...]:
    """Parse '6-18' (inclusive) or '8,12,16' into a tuple of start hours."""
    value = value.strip()
    if "-" in value:
        low, high = (int(part) for part in value.split("-", 1))
        hours = tuple(range(low, high + 1))
    else:
        hours = tuple(int(part) for part in value.split(",") if part.strip())
    if not hours or any(h < 0 or h > 23 for h in hours):
        raise ValueError(f"Invalid START_HOURS: {value!r}")
    return hours


class Settings(BaseSettings):
    backend: str = Field("local", validation_alias=AliasChoices("BOOKING_BACKEND", "backend"))
    data_dir: Path = Path("./data")
    database_url: str = "sqlite+aiosqlite:///./bookings.db"
    backend_url: Optional[str] = None
    remote_timeout: float = 10.0
    refresh_seconds: float = 60.0
    start_hours: Annotated[Tuple[int, ...], NoDecode] = tuple(range(6, 19))  # 06:00-18:00
    duration_hours: int = 4
    day_end_hour: int = 24
    one_booking_per_week: bool = False
    cors_origins: Annotated[List[str], NoDecode] = ["*"]
    log_level: str = "INFO"

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    @field_validator("backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip().lower()
        if value not in BACKENDS:
            raise ValueError(f"BOOKING_BACKEND must be one of {', '.join(BACKENDS)}, got {value!r}")
        return value

    @field_validator("start_hours", mode="before")
    @classmethod
    def _parse_start_hours(cls, value: object) -> object:
        if isinstance(value, str):
            return parse_hour_range(value)
        return value

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: object) -> object:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @model_validator(mode="after")
    def _remote_needs_url(self) -> "Settings":
        if self.backend == "remote" and not self.backend_url:
            raise ValueError("BACKEND_URL is not set. Please check your .env file.")
        return self


def load_settings(default_backend: str = "local") -> Settings:
    """Read settings from the environment and the nearest .env file, failing fast on bad values."""
    env_file = find_dotenv(usecwd=True) or None
    settings = Settings(_env_file=env_file)
    if "backend" not in settings.model_fields_set:
        # Clients default to the local snapshot, the server to its memory cache
        settings = Settings(_env_file=env_file, backend=default_backend)
    return settings
