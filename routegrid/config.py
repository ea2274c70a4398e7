"""RouteGrid configuration system using Pydantic Settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RouteGridConfig(BaseSettings):
    """Main configuration class. Loads from .env file and environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "ROUTEGRID"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"

    # Database
    database_url: str = "sqlite+aiosqlite:///./routegrid.db"
    db_wal_mode: bool = True
    db_busy_timeout: int = 5000  # milliseconds
    db_synchronous: str = "NORMAL"
    seed_sample_data: bool = True

    # Logging
    log_dir: str = "logs"
    log_file: str = "routegrid.log"
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    # Edit mode gate (static shared secret, not an access-control boundary)
    edit_secret: str = "CHANGE_ME_IN_PRODUCTION"

    # Grid
    depot_location: str = "QL kitchen"
    default_page_size: int = 16
    page_size_options: list[int] = [16, 30, 50, 100]
    grid_cache_ttl: float = 300.0  # seconds; collections are invalidated on every mutation

    # Client
    api_base_url: str = "http://127.0.0.1:8000/api/v1"
    api_timeout: float = 15.0
    layout_cache_path: str = ".routegrid/layout_cache.json"

    @field_validator("page_size_options")
    @classmethod
    def validate_page_size_options(cls, v: list[int]) -> list[int]:
        if not v or any(size <= 0 for size in v):
            raise ValueError("page_size_options must be a non-empty list of positive integers")
        return sorted(set(v))

    @field_validator("db_synchronous")
    @classmethod
    def validate_synchronous(cls, v: str) -> str:
        allowed = {"OFF", "NORMAL", "FULL", "EXTRA"}
        if v.upper() not in allowed:
            raise ValueError(f"db_synchronous must be one of {allowed}")
        return v.upper()

    @model_validator(mode="after")
    def validate_default_page_size(self) -> "RouteGridConfig":
        if self.default_page_size not in self.page_size_options:
            raise ValueError(
                f"default_page_size {self.default_page_size} is not one of {self.page_size_options}"
            )
        return self

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent.parent


def get_config() -> RouteGridConfig:
    """Factory function to create config instance."""
    return RouteGridConfig()
