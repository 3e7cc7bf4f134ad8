"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import List

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ---------------- DATABASE ----------------
    database_url: str = "sqlite+aiosqlite:///./fieldroute.db"

    # ---------------- AUTH ----------------
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 720

    # ---------------- APP ----------------
    app_name: str = "fieldroute"
    app_version: str = "0.1.0"
    debug: bool = False
    cors_origins: List[str] = []

    # Dates such as "today" and "tomorrow" are computed in this zone.
    business_timezone: str = "America/Phoenix"

    # ---------------- TWILIO (notification adapter) ----------------
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""

    # ---------------- MAPBOX (geocode adapter) ----------------
    mapbox_token: str = ""
    mapbox_base_url: str = "https://api.mapbox.com"

    # ---------------- GOOGLE CALENDAR (calendar adapter) ----------------
    google_calendar_api_base: str = "https://www.googleapis.com/calendar/v3"
    calendar_event_duration_minutes: int = 60

    # ---------------- FIELD CLIENT ----------------
    field_api_base_url: str = "http://localhost:8000"
    offline_store_path: str = "./fieldroute_offline.json"
    http_timeout_seconds: float = 10.0

    @computed_field
    @property
    def notifications_enabled(self) -> bool:
        return bool(
            self.twilio_account_sid and self.twilio_auth_token and self.twilio_phone_number
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
