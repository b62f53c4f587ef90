from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from redis.asyncio import Redis

from ..cache.redis import RecommendationCache, RedisRecommendationCache, get_redis
from ..core.config import Settings, get_settings
from ..core.security import RequestAccessTokenProvider
from ..spotify.client import SpotifyClient


async def get_settings_dep() -> Settings:
    return get_settings()


async def get_redis_dep() -> AsyncIterator[Redis]:
    async for client in get_redis():
        yield client


async def get_recommendation_cache(
    redis: Redis = Depends(get_redis_dep),
    settings: Settings = Depends(get_settings_dep),
) -> RecommendationCache:
    return RedisRecommendationCache.from_settings(redis, settings)


async def get_token_provider(request: Request) -> RequestAccessTokenProvider:
    return RequestAccessTokenProvider(request)


async def get_spotify_client(
    token_provider: RequestAccessTokenProvider = Depends(get_token_provider),
    settings: Settings = Depends(get_settings_dep),
) -> AsyncIterator[SpotifyClient]:
    token = await token_provider.get_valid_access_token()
    client = SpotifyClient.from_settings(token, settings)
    try:
        yield client
    finally:
        await client.close()
