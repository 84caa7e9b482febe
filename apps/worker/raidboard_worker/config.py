from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore", env_file=".env")

    api_base_url: str = "http://api:8000"
    boss_map_refresh_token: str = ""
    request_timeout_seconds: float = 20.0
    # Matches the API's mapping TTL so a refresh lands roughly once per cache lifetime.
    worker_interval_seconds: int = 300
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
