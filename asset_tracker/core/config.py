"""Environment-driven configuration for the asset tracker.

Every knob the service reads lives here. Values come from the process
environment first and then from ``.env`` / ``.env.local`` files next to the
working directory, so a development checkout boots without extra setup.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "IT Asset Tracker"
    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    BASE_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parents[2])
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parents[2] / "data")
    # Calendar "today" for borrow dates and the overdue sweep is taken in this zone.
    TZ: str = "UTC"

    DB_URL: str = Field(default="", validation_alias=AliasChoices("DATABASE_URL", "DB_URL"))

    JWT_SECRET: str = "change-me"
    JWT_ACCESS_TTL_MIN: int = 60
    JWT_REFRESH_TTL_DAYS: int = 7
    # Comma separated list of browser origins allowed by CORS.
    ALLOWED_ORIGINS: str = ""

    HOST: str = "0.0.0.0"
    PORT: int = 5000

    # ---- Outgoing mail (best effort; disabled unless SEND_EMAILS is set)
    SEND_EMAILS: bool = False
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = Field(default="", validation_alias=AliasChoices("SMTP_PASSWORD", "SMTP_PASS"))
    SMTP_STARTTLS: bool = True
    SMTP_TIMEOUT: float = 10.0
    EMAIL_FROM: str = "IT Inventory System <noreply@inventory.com>"

    # ---- Lifecycle / reporting windows
    UPCOMING_RETURN_DAYS: int = 7
    REMINDER_DAYS: int = 3
    RECENT_COMPLETION_DAYS: int = 30
    MAX_PAGE_SIZE: int = 500

    @property
    def database_url(self) -> str:
        return self.DB_URL or f"sqlite:///{self.DATA_DIR / 'assets.db'}"

    @property
    def allowed_origins(self) -> list[str]:
        return [item.strip() for item in self.ALLOWED_ORIGINS.split(",") if item.strip()]

    @field_validator("TZ", mode="before")
    @classmethod
    def default_timezone(cls, value: Any) -> str:
        if value in (None, ""):
            return "UTC"
        return str(value).strip()


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    if not settings.DB_URL:
        settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    return settings


settings = get_settings()
