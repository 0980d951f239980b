"""
Application configuration using Pydantic Settings.
Loads from environment variables with validation.
"""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> List[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "DataProSim"
    app_env: str = "development"
    debug: bool = False
    api_prefix: str = "/api"

    cors_origins: list = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ]
    # Server
    host: str = "0.0.0.0"
    port: int = 5000

    # Frontend
    frontend_url: str = "http://localhost:5173"

    # OpenAI (primary provider)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    openai_base_url: str = "https://api.openai.com/v1"

    # Gemini (secondary provider)
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    # Anthropic (opt-in provider, only used when listed in a chain)
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"

    # Provider chains, comma separated, in priority order
    mentor_providers: str = "openai,gemini"
    tips_providers: str = "openai"
    challenge_providers: str = "openai"

    # Upper bound for a single provider call
    provider_timeout_seconds: float = 8.0

    # Storage
    seed_demo_data: bool = True
    demo_user_id: str = "user-1"
    max_upload_bytes: int = 10 * 1024 * 1024  # 10 MB

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # Empty means console only, set to path for file logging
    log_json: bool = False  # Use JSON format for logs (recommended for production)

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def mentor_chain(self) -> List[str]:
        return _split_csv(self.mentor_providers)

    @property
    def tips_chain(self) -> List[str]:
        return _split_csv(self.tips_providers)

    @property
    def challenge_chain(self) -> List[str]:
        return _split_csv(self.challenge_providers)


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
