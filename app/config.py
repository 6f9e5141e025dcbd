from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str | None = None  # e.g. sqlite+aiosqlite:///./etg_cache.db
    use_in_memory: bool = True

    etg_base_url: str = "https://api.worldota.net/api/b2b/v3"
    etg_partner_id: str | None = Field(default=None, alias="ETG_KEY_ID")
    etg_api_key: str | None = Field(default=None, alias="ETG_API_KEY")

    # Timeouts por operación (segundos)
    etg_timeout_default_seconds: float = 15.0
    etg_timeout_search_seconds: float = 30.0
    etg_timeout_prebook_seconds: float = 20.0
    etg_timeout_finish_seconds: float = 30.0
    etg_timeout_status_seconds: float = 10.0

    cache_autocomplete_ttl_seconds: int = 7 * 24 * 3600
    cache_hotel_static_ttl_seconds: int = 7 * 24 * 3600
    cache_search_ttl_seconds: int = 3600

    enrichment_batch_size: int = 5
    enrichment_batch_delay_seconds: float = 1.0

    booking_poll_interval_seconds: float = 3.0
    booking_poll_max_attempts: int = 40
    booking_poll_deadline_seconds: float | None = 180.0

    etg_breaker_fail_max: int = 5
    etg_breaker_reset_timeout: int = 60


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
