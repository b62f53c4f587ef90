from __future__ import annotations

import re

SPOTIFY_URL_RE = re.compile(
    r"https?://(?:open|play)\.spotify\.com/(?:intl-[a-z-]+/)?playlist/(?P<id>[A-Za-z0-9]{22})",
    re.IGNORECASE,
)
SPOTIFY_URI_RE = re.compile(r"spotify:playlist:(?P<id>[A-Za-z0-9]{22})$", re.IGNORECASE)
SPOTIFY_ID_RE = re.compile(r"[A-Za-z0-9]{22}")


def parse_playlist_id(value: str) -> str:
    """Accept a playlist URL, ``spotify:playlist:`` URI or bare id."""
    value = (value or "").strip()
    if SPOTIFY_ID_RE.fullmatch(value):
        return value
    m = SPOTIFY_URI_RE.match(value)
    if not m:
        m = SPOTIFY_URL_RE.search(value)
    if not m:
        raise ValueError("unsupported spotify playlist reference")
    return m.group("id")
