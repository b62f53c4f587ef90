from __future__ import annotations

from fastapi import APIRouter, Depends

from ...core.security import verify_service_token
from ...schemas.recommend import PlaylistsResponse
from ...spotify.client import SpotifyClient, SpotifyClientError
from ...spotify.models import UserProfile
from ..deps import get_spotify_client
from .recommend import upstream_http_error

router = APIRouter(prefix="/v1/me", tags=["library"], dependencies=[Depends(verify_service_token)])


@router.get("", response_model=UserProfile)
async def get_profile(spotify_client: SpotifyClient = Depends(get_spotify_client)) -> UserProfile:
    try:
        return await spotify_client.get_current_user()
    except SpotifyClientError as exc:
        raise upstream_http_error(exc) from exc


@router.get("/playlists", response_model=PlaylistsResponse)
async def get_playlists(spotify_client: SpotifyClient = Depends(get_spotify_client)) -> PlaylistsResponse:
    try:
        playlists = await spotify_client.get_user_playlists()
    except SpotifyClientError as exc:
        raise upstream_http_error(exc) from exc
    return PlaylistsResponse(playlists=playlists)
