"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Krishi configuration. All values come from environment variables."""

    # Anthropic (reply generation)
    anthropic_api_key: str = Field(default="")
    claude_model: str = Field(default="claude-sonnet-4-5-20250929")
    max_output_tokens: int = Field(default=1024)

    # Reverie (speech synthesis)
    reverie_api_key: str = Field(default="")
    reverie_app_id: str = Field(default="")
    reverie_tts_url: str = Field(default="https://revapi.reverieinc.com/")

    # Database
    database_path: Path = Field(default=Path("data/krishi.db"))

    # Turso (hosted libSQL) — when set, overrides local database_path
    turso_database_url: str = Field(default="")
    turso_auth_token: str = Field(default="")

    # Conversation
    history_window: int = Field(default=5)

    # Language detection
    language_min_confidence: float = Field(default=0.5)

    # Location enrichment
    location_cache_ttl_seconds: int = Field(default=300)
    weather_api_url: str = Field(default="https://api.open-meteo.com/v1/forecast")
    geocode_api_url: str = Field(default="https://nominatim.openstreetmap.org/reverse")
    http_timeout_seconds: float = Field(default=10.0)
    http_user_agent: str = Field(default="KrishiAssistant/1.0 (farmer helper)")

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000)
    static_dir: Path | None = Field(default=None)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def tts_configured(self) -> bool:
        """True when both Reverie credentials are present."""
        return bool(self.reverie_api_key.strip() and self.reverie_app_id.strip())


settings = Settings()
