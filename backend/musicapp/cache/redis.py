from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Protocol

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..core.config import Settings, get_settings
from ..spotify.models import CachedRecommendations, Track

settings = get_settings()

redis = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)

logger = logging.getLogger("cache")


class CacheError(Exception):
    pass


class RecommendationCache(Protocol):
    async def get(self, playlist_id: str) -> Optional[CachedRecommendations]: ...

    async def set(self, playlist_id: str, tracks: List[Track], timestamp: datetime) -> None: ...

    async def delete(self, playlist_id: str) -> None: ...

    async def exists(self, playlist_id: str) -> bool: ...


def is_fresh(entry: CachedRecommendations, *, now: datetime, window: timedelta) -> bool:
    """An entry is usable while it is younger than ``window`` and holds tracks that all have artwork."""
    if not entry.tracks:
        return False
    timestamp = entry.timestamp
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    if now - timestamp >= window:
        return False
    return all(track.has_artwork for track in entry.tracks)


class RedisRecommendationCache:
    def __init__(self, client: Redis, *, prefix: str = "recommendations:", ttl: timedelta = timedelta(hours=24)) -> None:
        self.client = client
        self.prefix = prefix
        self.ttl = ttl

    @classmethod
    def from_settings(cls, client: Redis, settings: Settings) -> RedisRecommendationCache:
        return cls(client, prefix=settings.cache_key_prefix, ttl=timedelta(hours=settings.cache_freshness_hours))

    def _key(self, playlist_id: str) -> str:
        return f"{self.prefix}{playlist_id}"

    async def get(self, playlist_id: str) -> Optional[CachedRecommendations]:
        try:
            raw = await self.client.get(self._key(playlist_id))
        except RedisError as exc:
            raise CacheError(f"cache read failed for {playlist_id}: {exc}") from exc
        if not raw:
            return None
        try:
            return CachedRecommendations.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Discarding unreadable cache entry for %s: %s", playlist_id, exc)
            return None

    async def set(self, playlist_id: str, tracks: List[Track], timestamp: datetime) -> None:
        entry = CachedRecommendations(tracks=tracks, timestamp=timestamp)
        try:
            await self.client.set(self._key(playlist_id), entry.model_dump_json(), ex=max(1, int(self.ttl.total_seconds())))
        except RedisError as exc:
            raise CacheError(f"cache write failed for {playlist_id}: {exc}") from exc

    async def delete(self, playlist_id: str) -> None:
        try:
            await self.client.delete(self._key(playlist_id))
        except RedisError as exc:
            raise CacheError(f"cache delete failed for {playlist_id}: {exc}") from exc

    async def exists(self, playlist_id: str) -> bool:
        try:
            return bool(await self.client.exists(self._key(playlist_id)))
        except RedisError as exc:
            raise CacheError(f"cache lookup failed for {playlist_id}: {exc}") from exc


async def get_redis() -> AsyncIterator[Redis]:
    try:
        yield redis
    finally:
        # keep connection open for reuse; do not close
        pass
