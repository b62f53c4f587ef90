from __future__ import annotations

from collections import Counter
from typing import Iterable, List, Mapping

from ..spotify.models import Artist, Track

DEFAULT_TOP_GENRES = 5


def count_genres(tracks: Iterable[Track], artists_by_id: Mapping[str, Artist]) -> Counter[str]:
    """Count genre occurrences over every (track, distinct artist) pair.

    Genres come from the resolved artist record when there is one, else from
    whatever the track's own artist reference carries. Blank genres are
    ignored. ``Counter`` keeps insertion order, so equal counts stay in
    first-seen order.
    """
    counter: Counter[str] = Counter()
    for track in tracks:
        seen_on_track = set()
        for artist_ref in track.artists:
            if not artist_ref.id or artist_ref.id in seen_on_track:
                continue
            seen_on_track.add(artist_ref.id)
            artist = artists_by_id.get(artist_ref.id, artist_ref)
            for genre in artist.genres:
                name = (genre or "").strip()
                if name:
                    counter[name] += 1
    return counter


def rank_genres(
    tracks: Iterable[Track],
    artists_by_id: Mapping[str, Artist],
    *,
    limit: int = DEFAULT_TOP_GENRES,
) -> List[str]:
    counter = count_genres(tracks, artists_by_id)
    return [genre for genre, _ in counter.most_common(limit)]
