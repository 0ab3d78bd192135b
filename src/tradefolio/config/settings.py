"""Application settings and configuration."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_rate_limits() -> dict[str, int]:
    """Requests allowed per rate-limit window, keyed by quote source name."""
    return {
        "yahoo": 100,
        "finnhub": 60,
        "coingecko": 10,
        "ing": 50,
    }


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TRADEFOLIO_",
    )

    app_name: str = "Tradefolio"
    app_version: str = "0.1.0"

    log_level: str = "INFO"
    source_log_level: str = "INFO"
    local_timezone: str = "Europe/Berlin"

    # Cache
    quote_cache_max_entries: int = 500
    quote_cache_ttl_seconds: int = 300
    quote_max_age_seconds: int = 60
    search_max_age_seconds: int = 300
    indices_max_age_seconds: int = 300

    # Rate limiting (requests per window, per source)
    rate_limit_window_seconds: int = 60
    rate_limits_per_minute: dict[str, int] = Field(default_factory=default_rate_limits)

    # Upstream calls
    source_timeout_seconds: float = 10.0
    batch_timeout_seconds: float = 15.0
    quote_currency: str = "EUR"

    # Search
    search_min_query_length: int = 2
    search_price_lookup_limit: int = 10
    search_result_limit: int = 15

    # Providers
    use_stub_quotes: bool = False
    ing_base_url: str = "https://component-api.wertpapiere.ing.de/api/v1"
    ing_batch_limit: int = 5
    finnhub_base_url: str = "https://finnhub.io/api/v1"
    finnhub_api_key: Optional[str] = None
    finnhub_max_retries: int = 3
    finnhub_retry_delay_seconds: float = 1.0
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"


# Global settings instance (can be replaced at runtime)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the current settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set the global settings instance (used by tests and embedding apps)."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Reset settings to force reload."""
    global _settings
    _settings = None
