from __future__ import annotations

import logging
from typing import Dict, List, Protocol, Sequence

from ..core.config import Settings
from ..spotify.errors import SpotifyClientError
from ..spotify.models import Album, Artist, Track, default_image

UNKNOWN_ALBUM = "Unknown Album"
UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_TRACK = "Unknown Track"

logger = logging.getLogger("recommendations")


class AlbumLookup(Protocol):
    async def get_albums(self, album_ids: Sequence[str]) -> List[Album]: ...


def _patch_album(current: Album, resolved: Album) -> Album:
    return current.model_copy(
        update={
            "name": resolved.name or current.name,
            "release_date": resolved.release_date or current.release_date,
            "images": resolved.images or current.images,
            "artists": current.artists or resolved.artists,
        }
    )


def _apply_fallbacks(track: Track, settings: Settings) -> Track:
    update: Dict[str, object] = {}
    if track.album is None:
        update["album"] = Album(name=UNKNOWN_ALBUM, images=[default_image(settings.default_image_url)])
    elif not track.album.images:
        update["album"] = track.album.model_copy(
            update={
                "name": track.album.name or UNKNOWN_ALBUM,
                "images": [default_image(settings.default_image_url)],
            }
        )
    if not track.artists:
        update["artists"] = [Artist(name=UNKNOWN_ARTIST)]
    if not track.name.strip():
        update["name"] = UNKNOWN_TRACK
    return track.model_copy(update=update) if update else track


async def ensure_displayable(
    tracks: Sequence[Track],
    *,
    spotify_client: AlbumLookup,
    settings: Settings,
) -> List[Track]:
    """Return copies of ``tracks`` that all have artwork, an artist and a name.

    Tracks whose album lacks images get the album re-fetched in batches; any
    gap left after that, on any track, is filled with static placeholders.
    """
    result = list(tracks)
    missing = [index for index, track in enumerate(result) if not track.has_artwork]

    album_ids = list(
        dict.fromkeys(
            result[index].album.id
            for index in missing
            if result[index].album is not None and result[index].album.id
        )
    )
    if album_ids:
        try:
            albums = await spotify_client.get_albums(album_ids)
        except SpotifyClientError as exc:
            logger.warning("Album backfill lookup failed for %s albums: %s", len(album_ids), exc)
            albums = []
        resolved = {album.id: album for album in albums if album.id and album.images}
        patched = 0
        for index in missing:
            album = result[index].album
            if album is None or album.id not in resolved:
                continue
            result[index] = result[index].model_copy(update={"album": _patch_album(album, resolved[album.id])})
            patched += 1
        logger.info("Backfilled artwork for %s of %s tracks", patched, len(missing))

    return [_apply_fallbacks(track, settings) for track in result]
