"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Forecast levels that trigger rain and heat handling, shared with the
# advisory text derived on WeatherForecast
RAIN_PRECIPITATION_THRESHOLD = 70.0
HEAT_TEMPERATURE_THRESHOLD = 35.0


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Text generation
    openai_api_key: SecretStr | None = None
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.7
    openai_max_tokens: int = 1000

    # Routing collaborator (normalized internal service)
    routing_base_url: str | None = None
    routing_timeout_sec: float = 4.0

    # Timeout (milliseconds)
    tool_hard_timeout_ms: int = 4000

    # Retries
    tool_retry_count: int = 1
    retry_jitter_min_ms: int = 200
    retry_jitter_max_ms: int = 500

    # Circuit breaker
    circuit_breaker_failures: int = 5
    circuit_breaker_window_sec: int = 60
    circuit_breaker_half_open_sec: int = 30

    # Analysis cache
    analysis_cache_ttl_seconds: int = 3600
    cache_max_entries: int = 256

    # Timing buffers (minutes)
    transit_buffer_min: int = 15
    time_adaptation_buffer_min: int = 30
    day_start: str = "09:00"

    # Adaptation thresholds
    rain_precipitation_threshold: float = RAIN_PRECIPITATION_THRESHOLD
    heat_temperature_threshold: float = HEAT_TEMPERATURE_THRESHOLD
    budget_usage_threshold: float = 0.9

    # Budget
    potential_savings_ratio: float = 0.15

    # Concurrency
    route_concurrency: int = 4


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
