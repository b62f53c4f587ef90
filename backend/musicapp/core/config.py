from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="MUSICAPP_", extra="allow")

    environment: str = "development"
    log_level: str = "INFO"
    redis_url: str = "redis://redis:6379/0"
    service_token: str = ""
    allow_origins: List[str] = ["*"]

    spotify_api_base: str = "https://api.spotify.com/v1"
    http_timeout_seconds: float = 15.0
    http_retries: int = 3
    market: str = "US"
    playlist_page_size: int = 100
    artist_batch_size: int = 50
    album_batch_size: int = 20

    rate_limit_max_retries: int = 5
    rate_limit_default_retry_after: float = 5.0
    rate_limit_max_backoff: float = 60.0

    recommendation_sample_size: int = 100
    recommendation_top_genres: int = 5
    genre_search_limit: int = 3
    tracks_per_artist: int = 2
    recommendation_limit: int = 15

    cache_freshness_hours: float = 24.0
    cache_key_prefix: str = "recommendations:"
    default_image_url: str = "https://via.placeholder.com/300x300.png?text=No+Artwork"

    @field_validator("artist_batch_size", "album_batch_size", "playlist_page_size", "rate_limit_max_retries")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
