from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

import numpy as np
import pytest

from factories import make_album, make_artist, make_track
from musicapp.cache.redis import CacheError
from musicapp.core.config import Settings
from musicapp.services.recommendations import get_playlist_recommendations, invalidate_playlist_recommendations
from musicapp.spotify.errors import RateLimitedError, UpstreamError
from musicapp.spotify.models import Album, Artist, CachedRecommendations, Image, Track

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


@dataclass(slots=True)
class _StubSpotifyClient:
    playlist_tracks: List[Track]
    artists: Dict[str, Artist]
    genre_artists: Dict[str, List[Artist]] = field(default_factory=dict)
    top_tracks: Dict[str, List[Track]] = field(default_factory=dict)
    albums: Dict[str, Album] = field(default_factory=dict)
    playlist_error: Exception | None = None
    artists_error: Exception | None = None
    failing_genres: set = field(default_factory=set)
    artist_requests: List[List[str]] = field(default_factory=list)
    searches: List[str] = field(default_factory=list)
    top_track_requests: List[str] = field(default_factory=list)
    playlist_requests: int = 0

    async def get_playlist_tracks(self, playlist_id: str) -> List[Track]:
        self.playlist_requests += 1
        if self.playlist_error is not None:
            raise self.playlist_error
        return list(self.playlist_tracks)

    async def get_artists(self, artist_ids: Iterable[str]) -> List[Artist]:
        ids = list(artist_ids)
        self.artist_requests.append(ids)
        if self.artists_error is not None:
            raise self.artists_error
        return [self.artists[artist_id] for artist_id in ids if artist_id in self.artists]

    async def get_albums(self, album_ids: Iterable[str]) -> List[Album]:
        return [self.albums[album_id] for album_id in album_ids if album_id in self.albums]

    async def search_artists_by_genre(self, genre: str, *, limit: int = 3) -> List[Artist]:
        self.searches.append(genre)
        if genre in self.failing_genres:
            raise RateLimitedError("slow down", retry_after=1.0)
        return list(self.genre_artists.get(genre, []))[:limit]

    async def get_artist_top_tracks(self, artist_id: str, market: str | None = None) -> List[Track]:
        self.top_track_requests.append(artist_id)
        return list(self.top_tracks.get(artist_id, []))


@dataclass(slots=True)
class _StubCache:
    entries: Dict[str, CachedRecommendations] = field(default_factory=dict)
    fail_reads: bool = False
    fail_writes: bool = False
    deleted: List[str] = field(default_factory=list)
    writes: int = 0

    async def get(self, playlist_id: str) -> Optional[CachedRecommendations]:
        if self.fail_reads:
            raise CacheError("redis down")
        return self.entries.get(playlist_id)

    async def set(self, playlist_id: str, tracks: List[Track], timestamp: datetime) -> None:
        self.writes += 1
        if self.fail_writes:
            raise CacheError("redis down")
        self.entries[playlist_id] = CachedRecommendations(tracks=tracks, timestamp=timestamp)

    async def delete(self, playlist_id: str) -> None:
        self.deleted.append(playlist_id)
        self.entries.pop(playlist_id, None)

    async def exists(self, playlist_id: str) -> bool:
        return playlist_id in self.entries


def _top(artist_id: str, count: int) -> List[Track]:
    return [make_track(f"{artist_id}-top{i}", [make_artist(artist_id)]) for i in range(count)]


def _three_track_client() -> _StubSpotifyClient:
    """Playlist with artists tagged rock, pop, rock."""
    return _StubSpotifyClient(
        playlist_tracks=[
            make_track("t1", [make_artist("a1")]),
            make_track("t2", [make_artist("a2")]),
            make_track("t3", [make_artist("a3")]),
        ],
        artists={
            "a1": make_artist("a1", "rock"),
            "a2": make_artist("a2", "pop"),
            "a3": make_artist("a3", "rock"),
        },
        genre_artists={
            "rock": [make_artist("rock-star"), make_artist("rock-2")],
            "pop": [make_artist("pop-star")],
        },
        top_tracks={
            "rock-star": _top("rock-star", 5),
            "pop-star": _top("pop-star", 5),
        },
    )


def _recommend(
    client: _StubSpotifyClient,
    cache: _StubCache | None = None,
    *,
    settings: Settings | None = None,
    now: datetime = NOW,
    seed: int = 11,
) -> List[Track]:
    return asyncio.run(
        get_playlist_recommendations(
            "playlist-1",
            spotify_client=client,
            cache=cache,
            settings=settings or Settings(),
            rng=np.random.default_rng(seed),
            now=now,
        )
    )


def test_three_track_playlist_end_to_end() -> None:
    client = _three_track_client()
    cache = _StubCache()

    result = _recommend(client, cache)

    assert client.artist_requests == [["a1", "a2", "a3"]]
    assert client.searches == ["rock", "pop"]
    assert client.top_track_requests == ["rock-star", "pop-star"]
    expected = {"rock-star-top0", "rock-star-top1", "pop-star-top0", "pop-star-top1"}
    assert {track.id for track in result} == expected
    assert len(result) == 4
    assert all(track.is_displayable for track in result)
    assert cache.entries["playlist-1"].tracks == result
    assert cache.entries["playlist-1"].timestamp == NOW


def test_output_order_depends_only_on_seed() -> None:
    first = [track.id for track in _recommend(_three_track_client(), seed=3)]
    second = [track.id for track in _recommend(_three_track_client(), seed=3)]
    assert first == second


def test_candidate_artists_are_never_reused_across_genres() -> None:
    shared = make_artist("shared")
    client = _StubSpotifyClient(
        playlist_tracks=[
            make_track("t1", [make_artist("a1")]),
            make_track("t2", [make_artist("a2")]),
            make_track("t3", [make_artist("a3")]),
        ],
        artists={
            "a1": make_artist("a1", "rock"),
            "a2": make_artist("a2", "rock", "pop"),
            "a3": make_artist("a3", "jazz"),
        },
        genre_artists={
            "rock": [shared, make_artist("r2")],
            "pop": [shared, make_artist("p2")],
            "jazz": [shared],
        },
        top_tracks={"shared": _top("shared", 3), "p2": _top("p2", 3)},
    )

    result = _recommend(client)

    assert client.searches == ["rock", "pop", "jazz"]
    assert client.top_track_requests == ["shared", "p2"]
    assert len(client.top_track_requests) == len(set(client.top_track_requests))
    assert {track.id for track in result} == {"shared-top0", "shared-top1", "p2-top0", "p2-top1"}


def test_large_playlists_are_sampled_to_one_hundred_tracks() -> None:
    tracks = [make_track(f"t{i}", [make_artist(f"a{i}")]) for i in range(150)]
    artists = {f"a{i}": make_artist(f"a{i}", "rock") for i in range(150)}
    client = _StubSpotifyClient(playlist_tracks=tracks, artists=artists)

    _recommend(client)

    (requested,) = client.artist_requests
    assert len(requested) == 100
    assert len(set(requested)) == 100


def test_recommendations_are_capped() -> None:
    genres = ["g1", "g2", "g3", "g4", "g5"]
    client = _StubSpotifyClient(
        playlist_tracks=[make_track(f"t{i}", [make_artist(f"a{i}")]) for i in range(5)],
        artists={f"a{i}": make_artist(f"a{i}", genre) for i, genre in enumerate(genres)},
        genre_artists={genre: [make_artist(f"cand-{genre}")] for genre in genres},
        top_tracks={f"cand-{genre}": _top(f"cand-{genre}", 10) for genre in genres},
    )

    result = _recommend(client, settings=Settings(tracks_per_artist=5))

    assert len(result) == 15
    assert len({track.id for track in result}) == 15


def test_fresh_cache_entry_is_served_without_upstream_calls() -> None:
    cached = [make_track("cached-1", [make_artist("x")])]
    cache = _StubCache(entries={"playlist-1": CachedRecommendations(tracks=cached, timestamp=NOW - timedelta(hours=23))})
    client = _three_track_client()

    result = _recommend(client, cache)

    assert [track.id for track in result] == ["cached-1"]
    assert client.playlist_requests == 0
    assert cache.writes == 0


def test_stale_cache_entry_is_recomputed() -> None:
    cached = [make_track("cached-1", [make_artist("x")])]
    cache = _StubCache(entries={"playlist-1": CachedRecommendations(tracks=cached, timestamp=NOW - timedelta(hours=24, minutes=1))})
    client = _three_track_client()

    result = _recommend(client, cache)

    assert client.playlist_requests == 1
    assert cache.deleted == ["playlist-1"]
    assert "cached-1" not in {track.id for track in result}
    assert cache.entries["playlist-1"].timestamp == NOW


def test_cache_entry_missing_artwork_is_not_fresh() -> None:
    written_at = NOW
    incomplete = [
        make_track("ok", [make_artist("x")]),
        make_track("no-art", [make_artist("x")], album=make_album("al", images=False)),
    ]
    cache = _StubCache(entries={"playlist-1": CachedRecommendations(tracks=incomplete, timestamp=written_at)})
    client = _three_track_client()

    result = _recommend(client, cache, now=written_at + timedelta(minutes=1))

    assert client.playlist_requests == 1
    assert {track.id for track in result}.isdisjoint({"ok", "no-art"})


def test_cache_failures_never_surface() -> None:
    client = _three_track_client()
    cache = _StubCache(fail_reads=True, fail_writes=True)

    result = _recommend(client, cache)

    assert len(result) == 4
    assert cache.writes == 1


def test_playlist_fetch_failure_is_fatal() -> None:
    client = _three_track_client()
    client.playlist_error = UpstreamError("spotify api error 500", status_code=500)
    cache = _StubCache()

    with pytest.raises(UpstreamError):
        _recommend(client, cache)
    assert cache.writes == 0


def test_artist_lookup_failure_degrades_to_empty_result() -> None:
    client = _three_track_client()
    client.artists_error = UpstreamError("down", status_code=503)
    cache = _StubCache()

    # embedded artist references carry no genres, so nothing can be ranked
    result = _recommend(client, cache)

    assert result == []
    assert client.searches == []
    assert cache.writes == 0
    assert "playlist-1" not in cache.entries


def test_empty_cached_entry_is_recomputed() -> None:
    cache = _StubCache(entries={"playlist-1": CachedRecommendations(tracks=[], timestamp=NOW - timedelta(minutes=5))})
    client = _three_track_client()

    result = _recommend(client, cache)

    assert client.playlist_requests == 1
    assert len(result) == 4
    assert cache.deleted == ["playlist-1"]
    assert cache.entries["playlist-1"].tracks == result


def test_failed_genre_search_only_drops_that_genre() -> None:
    client = _three_track_client()
    client.failing_genres = {"rock"}

    result = _recommend(client)

    assert client.searches == ["rock", "pop"]
    assert {track.id for track in result} == {"pop-star-top0", "pop-star-top1"}


def test_candidate_tracks_are_backfilled() -> None:
    client = _three_track_client()
    bare = Track(id="bare", name="", artists=[], album=Album(id="al-bare", name="Bare", images=[]))
    client.top_tracks = {"rock-star": [bare], "pop-star": []}
    client.albums = {"al-bare": Album(id="al-bare", name="Bare", images=[Image(url="https://img.example.com/bare.jpg")])}

    (track,) = _recommend(client)

    assert track.album is not None
    assert track.album.images[0].url == "https://img.example.com/bare.jpg"
    assert track.artists[0].name == "Unknown Artist"
    assert track.name == "Unknown Track"


def test_invalidate_drops_existing_entry() -> None:
    cache = _StubCache(entries={"playlist-1": CachedRecommendations(tracks=[], timestamp=NOW)})

    assert asyncio.run(invalidate_playlist_recommendations("playlist-1", cache=cache)) is True
    assert asyncio.run(invalidate_playlist_recommendations("playlist-1", cache=cache)) is False
    assert cache.deleted == ["playlist-1"]
