from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, Iterable, List, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..core.config import Settings
from .batching import resolve_batches
from .errors import (
    RateLimitedError,
    SpotifyAuthError,
    SpotifyClientError,
    SpotifyDeserializationError,
    UpstreamError,
)
from .models import (
    Album,
    AlbumsResponse,
    Artist,
    ArtistSearchResponse,
    ArtistsResponse,
    PlaylistSummary,
    PlaylistTrackItem,
    TopTracksResponse,
    Track,
    UserProfile,
)
from .pagination import fetch_all
from .ratelimit import RateLimitPolicy, Sleep, call_with_backoff

__all__ = [
    "SpotifyClient",
    "SpotifyClientError",
    "SpotifyAuthError",
    "UpstreamError",
    "RateLimitedError",
    "SpotifyDeserializationError",
]

API_BASE = "https://api.spotify.com/v1"
ARTIST_BATCH_SIZE = 50
ALBUM_BATCH_SIZE = 20

M = TypeVar("M", bound=BaseModel)

logger = logging.getLogger("spotify.client")


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _parse(model: Type[M], payload: Any, *, what: str) -> M:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise SpotifyDeserializationError(f"unexpected {what} payload: {exc}") from exc


@dataclass(slots=True)
class SpotifyClient:
    access_token: str
    timeout: float = 15.0
    retries: int = 3
    base_url: str = API_BASE
    market: str = "US"
    page_size: int = 100
    artist_batch_size: int = ARTIST_BATCH_SIZE
    album_batch_size: int = ALBUM_BATCH_SIZE
    rate_limit: RateLimitPolicy = field(default_factory=RateLimitPolicy)
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)
    sleep: Sleep = field(default=asyncio.sleep, repr=False)
    _client: httpx.AsyncClient | None = field(init=False, repr=False, default=None)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.access_token}", "Content-Type": "application/json"},
            timeout=self.timeout,
            transport=self.transport,
        )

    @classmethod
    def from_settings(cls, access_token: str, settings: Settings, **kwargs: Any) -> SpotifyClient:
        return cls(
            access_token=access_token,
            timeout=settings.http_timeout_seconds,
            retries=settings.http_retries,
            base_url=settings.spotify_api_base,
            market=settings.market,
            page_size=settings.playlist_page_size,
            artist_batch_size=settings.artist_batch_size,
            album_batch_size=settings.album_batch_size,
            rate_limit=RateLimitPolicy(
                max_retries=settings.rate_limit_max_retries,
                default_retry_after=settings.rate_limit_default_retry_after,
                max_backoff=settings.rate_limit_max_backoff,
            ),
            **kwargs,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Dict[str, Any] | None = None,
        json: Dict[str, Any] | None = None,
    ) -> Any:
        client = self._client
        if client is None:
            raise SpotifyClientError("spotify client not initialized")

        # Cursor URLs are absolute; relative paths must not start with a slash
        # or httpx drops the /v1 prefix of base_url.
        clean_url = url if url.startswith(("http://", "https://")) else url.lstrip("/")

        for attempt in range(1, self.retries + 1):
            try:
                response = await client.request(method, clean_url, params=params, json=json)
            except httpx.RequestError as exc:  # network issue
                if attempt == self.retries:
                    raise UpstreamError(f"network error: {exc}") from exc
                await self.sleep(2 ** attempt)
                continue

            if response.status_code == 401:
                raise SpotifyAuthError("spotify token unauthorized")

            if response.status_code == 429:
                retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                raise RateLimitedError(f"spotify rate limit on {method} {url}", retry_after=retry_after)

            if response.status_code >= 400:
                detail = response.text
                logger.error("Spotify API %s %s -> %s %s", method, url, response.status_code, detail)
                raise UpstreamError(f"spotify api error {response.status_code}: {detail}", status_code=response.status_code)

            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as exc:
                raise SpotifyDeserializationError(f"non-json body from {method} {url}") from exc

        raise UpstreamError("max retries exceeded for spotify request")

    async def get(self, url: str, *, params: Dict[str, Any] | None = None) -> Any:
        return await self._request("GET", url, params=params)

    async def get_current_user(self) -> UserProfile:
        payload = await self.get("/me")
        return _parse(UserProfile, payload, what="user profile")

    async def get_user_playlists(self) -> List[PlaylistSummary]:
        items = await fetch_all(self, "/me/playlists", params={"limit": 50})
        playlists: List[PlaylistSummary] = []
        for item in items:
            try:
                playlists.append(PlaylistSummary.model_validate(item))
            except ValidationError:
                logger.debug("Dropping unreadable playlist entry: %r", item)
        return playlists

    async def get_playlist_tracks(self, playlist_id: str) -> List[Track]:
        items = await fetch_all(self, f"/playlists/{playlist_id}/tracks", params={"limit": self.page_size})
        tracks: List[Track] = []
        for item in items:
            try:
                entry = PlaylistTrackItem.model_validate(item or {})
            except ValidationError:
                logger.debug("Dropping unreadable playlist item in %s", playlist_id)
                continue
            # Removed and local tracks come back as null
            if entry.track is None:
                continue
            tracks.append(entry.track)
        return tracks

    async def get_artists(self, artist_ids: Iterable[str]) -> List[Artist]:
        return await resolve_batches(
            self,
            artist_ids,
            batch_size=self.artist_batch_size,
            path="/artists",
            response_model=ArtistsResponse,
            field="artists",
            policy=self.rate_limit,
            sleep=self.sleep,
        )

    async def get_albums(self, album_ids: Iterable[str]) -> List[Album]:
        return await resolve_batches(
            self,
            album_ids,
            batch_size=self.album_batch_size,
            path="/albums",
            response_model=AlbumsResponse,
            field="albums",
            policy=self.rate_limit,
            sleep=self.sleep,
        )

    async def search_artists_by_genre(self, genre: str, *, limit: int = 3) -> List[Artist]:
        if not genre.strip():
            return []
        request = partial(
            self.get,
            "/search",
            params={"q": f'genre:"{genre}"', "type": "artist", "limit": limit},
        )
        payload = await call_with_backoff(request, self.rate_limit, sleep=self.sleep, label=f"genre search {genre!r}")
        result = _parse(ArtistSearchResponse, payload, what="artist search")
        return result.artists.items[:limit]

    async def get_artist_top_tracks(self, artist_id: str, market: str | None = None) -> List[Track]:
        if not artist_id:
            return []
        request = partial(self.get, f"/artists/{artist_id}/top-tracks", params={"market": market or self.market})
        payload = await call_with_backoff(request, self.rate_limit, sleep=self.sleep, label=f"top tracks {artist_id}")
        return _parse(TopTracksResponse, payload, what="top tracks").tracks
