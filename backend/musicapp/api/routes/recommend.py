from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ...cache.redis import RecommendationCache
from ...core.config import Settings
from ...core.security import verify_service_token
from ...schemas.recommend import InvalidateResponse, RecommendRequest, RecommendResponse
from ...services.recommendations import get_playlist_recommendations, invalidate_playlist_recommendations
from ...spotify.client import RateLimitedError, SpotifyAuthError, SpotifyClient, SpotifyClientError
from ...spotify.parsing import parse_playlist_id
from ..deps import get_recommendation_cache, get_settings_dep, get_spotify_client

router = APIRouter(prefix="/v1", tags=["recommendations"], dependencies=[Depends(verify_service_token)])


def upstream_http_error(exc: SpotifyClientError) -> HTTPException:
    if isinstance(exc, SpotifyAuthError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(int(exc.retry_after))} if exc.retry_after is not None else None
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc), headers=headers)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


def _playlist_id_or_400(value: str) -> str:
    try:
        return parse_playlist_id(value)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


async def _recommend(
    playlist_id: str,
    *,
    spotify_client: SpotifyClient,
    cache: RecommendationCache,
    settings: Settings,
) -> RecommendResponse:
    try:
        tracks = await get_playlist_recommendations(
            playlist_id,
            spotify_client=spotify_client,
            cache=cache,
            settings=settings,
        )
    except SpotifyClientError as exc:
        raise upstream_http_error(exc) from exc
    return RecommendResponse(playlist_id=playlist_id, recommendations=tracks)


@router.get("/playlists/{playlist_id}/recommendations", response_model=RecommendResponse)
async def get_recommendations(
    playlist_id: str,
    *,
    cache: RecommendationCache = Depends(get_recommendation_cache),
    spotify_client: SpotifyClient = Depends(get_spotify_client),
    settings: Settings = Depends(get_settings_dep),
) -> RecommendResponse:
    return await _recommend(
        _playlist_id_or_400(playlist_id),
        spotify_client=spotify_client,
        cache=cache,
        settings=settings,
    )


@router.post("/recommendations", response_model=RecommendResponse)
async def create_recommendations(
    payload: RecommendRequest,
    *,
    cache: RecommendationCache = Depends(get_recommendation_cache),
    spotify_client: SpotifyClient = Depends(get_spotify_client),
    settings: Settings = Depends(get_settings_dep),
) -> RecommendResponse:
    return await _recommend(payload.playlist_id, spotify_client=spotify_client, cache=cache, settings=settings)


@router.delete("/playlists/{playlist_id}/recommendations", response_model=InvalidateResponse)
async def delete_recommendations(
    playlist_id: str,
    cache: RecommendationCache = Depends(get_recommendation_cache),
) -> InvalidateResponse:
    playlist_id = _playlist_id_or_400(playlist_id)
    invalidated = await invalidate_playlist_recommendations(playlist_id, cache=cache)
    return InvalidateResponse(playlist_id=playlist_id, invalidated=invalidated)
