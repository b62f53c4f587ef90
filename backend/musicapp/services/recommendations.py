"""Playlist-driven recommendations.

A run goes: cache check, fetch every playlist track, sample, resolve the
artists' genres, rank genres, pick one unseen artist per top genre and take
their top tracks, shuffle and cap the pool, backfill artwork, write the
cache. Only the initial track fetch may fail the request; every later stage
degrades to fewer results.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Set, Tuple

import numpy as np

from ..cache.redis import CacheError, RecommendationCache, is_fresh
from ..core.config import Settings
from ..spotify.errors import SpotifyClientError
from ..spotify.models import Album, Artist, Track
from .backfill import ensure_displayable
from .genres import rank_genres
from .sampling import make_rng, sample_without_replacement, shuffle_and_cap

logger = logging.getLogger("recommendations")


class CatalogClient(Protocol):
    async def get_playlist_tracks(self, playlist_id: str) -> List[Track]: ...

    async def get_artists(self, artist_ids: Iterable[str]) -> List[Artist]: ...

    async def get_albums(self, album_ids: Iterable[str]) -> List[Album]: ...

    async def search_artists_by_genre(self, genre: str, *, limit: int = 3) -> List[Artist]: ...

    async def get_artist_top_tracks(self, artist_id: str, market: str | None = None) -> List[Track]: ...


async def _read_cache(
    cache: RecommendationCache | None,
    playlist_id: str,
    *,
    now: datetime,
    window: timedelta,
) -> Optional[List[Track]]:
    if cache is None:
        return None
    try:
        entry = await cache.get(playlist_id)
    except CacheError as exc:
        logger.warning("Recommendation cache unavailable for %s: %s", playlist_id, exc)
        return None
    if entry is None:
        return None
    if is_fresh(entry, now=now, window=window):
        return list(entry.tracks)

    logger.info("Cached recommendations for %s are stale or incomplete; recomputing", playlist_id)
    try:
        await cache.delete(playlist_id)
    except CacheError as exc:
        logger.warning("Could not drop stale cache entry for %s: %s", playlist_id, exc)
    return None


async def _write_cache(
    cache: RecommendationCache | None,
    playlist_id: str,
    tracks: List[Track],
    *,
    now: datetime,
) -> None:
    if cache is None:
        return
    try:
        await cache.set(playlist_id, tracks, now)
    except CacheError as exc:
        logger.warning("Failed to cache recommendations for %s: %s", playlist_id, exc)


def _distinct_artist_ids(tracks: Sequence[Track]) -> List[str]:
    ids: Dict[str, None] = {}
    for track in tracks:
        for artist in track.artists:
            if artist.id:
                ids.setdefault(artist.id, None)
    return list(ids)


async def _resolve_artists(spotify_client: CatalogClient, tracks: Sequence[Track]) -> Dict[str, Artist]:
    artist_ids = _distinct_artist_ids(tracks)
    if not artist_ids:
        return {}
    try:
        artists = await spotify_client.get_artists(artist_ids)
    except SpotifyClientError as exc:
        logger.warning("Artist lookup failed for %s artists: %s", len(artist_ids), exc)
        return {}
    return {artist.id: artist for artist in artists if artist.id}


async def _discover_candidates(
    spotify_client: CatalogClient,
    genres: Sequence[str],
    *,
    settings: Settings,
) -> Tuple[List[Track], Set[str]]:
    """One fresh artist per genre, contributing their first few top tracks."""
    processed: Set[str] = set()
    pool: List[Track] = []
    for genre in genres:
        try:
            candidates = await spotify_client.search_artists_by_genre(genre, limit=settings.genre_search_limit)
        except SpotifyClientError as exc:
            logger.warning("Artist search failed for genre %s: %s", genre, exc)
            continue

        artist = next((c for c in candidates if c.id and c.id not in processed), None)
        if artist is None:
            logger.debug("No unprocessed artist left for genre %s", genre)
            continue
        processed.add(artist.id)

        try:
            top_tracks = await spotify_client.get_artist_top_tracks(artist.id, market=settings.market)
        except SpotifyClientError as exc:
            logger.warning("Top tracks fetch failed for %s: %s", artist.id, exc)
            continue
        pool.extend(top_tracks[: settings.tracks_per_artist])
    return pool, processed


async def get_playlist_recommendations(
    playlist_id: str,
    *,
    spotify_client: CatalogClient,
    cache: RecommendationCache | None,
    settings: Settings,
    rng: np.random.Generator | None = None,
    now: datetime | None = None,
) -> List[Track]:
    now = now or datetime.now(timezone.utc)
    window = timedelta(hours=settings.cache_freshness_hours)

    cached = await _read_cache(cache, playlist_id, now=now, window=window)
    if cached is not None:
        logger.info("Serving %s cached recommendations for %s", len(cached), playlist_id)
        return cached

    rng = rng if rng is not None else make_rng()

    tracks = await spotify_client.get_playlist_tracks(playlist_id)
    sampled = sample_without_replacement(tracks, settings.recommendation_sample_size, rng)

    artists_by_id = await _resolve_artists(spotify_client, sampled)
    top_genres = rank_genres(sampled, artists_by_id, limit=settings.recommendation_top_genres)
    logger.info(
        "Playlist analysis for %s: %s tracks (%s sampled), %s artists resolved, top genres: %s",
        playlist_id,
        len(tracks),
        len(sampled),
        len(artists_by_id),
        top_genres,
    )

    pool, processed = await _discover_candidates(spotify_client, top_genres, settings=settings)
    picked = shuffle_and_cap(pool, settings.recommendation_limit, rng)
    recommendations = await ensure_displayable(picked, spotify_client=spotify_client, settings=settings)

    if recommendations:
        await _write_cache(cache, playlist_id, recommendations, now=now)
    else:
        logger.info("No recommendations for %s; skipping cache write", playlist_id)
    logger.info(
        "Built %s recommendations for %s from %s candidates across %s artists",
        len(recommendations),
        playlist_id,
        len(pool),
        len(processed),
    )
    return recommendations


async def invalidate_playlist_recommendations(playlist_id: str, *, cache: RecommendationCache) -> bool:
    try:
        existed = await cache.exists(playlist_id)
        if existed:
            await cache.delete(playlist_id)
    except CacheError as exc:
        logger.warning("Could not invalidate recommendations for %s: %s", playlist_id, exc)
        return False
    return existed
