from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore", env_file=".env")

    app_name: str = "Raidboard API"
    cors_origin: str = "http://localhost:3000"
    log_level: str = "INFO"

    database_url: str = "sqlite+pysqlite:///./raidboard.db"
    # "sql" aggregates with plain queries; "procedures" calls the stored ranking functions (Postgres only).
    store_backend: Literal["sql", "procedures"] = "sql"
    poster_ranking_procedure: str = Field(default="get_top_posters_merged", pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    battle_ranking_procedure: str = Field(default="top_battles", pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")

    boss_map_csv_url: str = ""
    boss_map_local_csv: str = "data/boss-map.csv"
    boss_map_refresh_token: str = ""
    boss_map_ttl_seconds: int = Field(default=300, ge=0)
    boss_map_fetch_timeout_seconds: float = Field(default=10.0, gt=0)

    # Posters are merged after fetching, so the upstream limit is padded.
    poster_overfetch_multiplier: int = Field(default=5, ge=1)
    poster_overfetch_floor: int = Field(default=50, ge=1)
    poster_overfetch_ceiling: int = Field(default=500, ge=1)
    battle_fetch_limit: int = Field(default=1000, ge=1)

    default_days: int = 7
    max_days: int = 60
    default_limit: int = 10
    max_limit: int = 100


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
