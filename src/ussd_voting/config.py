"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

MIN_SESSION_TTL_SECONDS = 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    voting_backend_url: str
    voting_backend_api_key: str
    voting_backend_timeout_seconds: float = 10.0
    admin_token: str
    ussd_shortcode: str = "*384#"
    ussd_session_ttl_seconds: int = 60 * 30
    ussd_single_flight: bool = True
    session_store: str = "supabase"
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def resolve_session_ttl(raw: int) -> int:
    """Clamp the session TTL so sessions never expire in under a minute."""
    return max(MIN_SESSION_TTL_SECONDS, raw)
