from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    app_env: str = "dev"
    log_level: str = "INFO"

    # Infra
    redis_url: str = "redis://redis:6379/0"
    table_name: str = "knockrd"
    store_timeout_seconds: float = 30.0

    # Allow list / cache policies
    ttl_seconds: int = 3600
    cache_ttl_seconds: int = 10  # 0 disables the in-memory cache

    # Request
    address_header: str = "X-Real-IP"

    # Change feed
    stream_batch_size: int = 100
    stream_poll_interval: float = 1.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def caching_enabled(self) -> bool:
        return self.cache_ttl_seconds > 0

    @property
    def effective_cache_ttl(self) -> int:
        """Cache TTL clamped so it never outlives the items it mirrors."""
        return min(self.cache_ttl_seconds, self.ttl_seconds)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
