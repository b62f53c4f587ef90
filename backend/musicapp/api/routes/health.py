from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from redis.exceptions import RedisError

from ...schemas.recommend import HealthResponse
from ..deps import get_redis_dep

router = APIRouter(prefix="/v1", tags=["health"])

logger = logging.getLogger("cache")


@router.get("/health", response_model=HealthResponse)
async def get_health(redis: Redis = Depends(get_redis_dep)) -> HealthResponse:
    try:
        cache_ok = bool(await redis.ping())
    except RedisError as exc:
        logger.warning("Redis ping failed: %s", exc)
        cache_ok = False
    # The cache is optional; the service stays up without it.
    return HealthResponse(ok=True, cache=cache_ok)
