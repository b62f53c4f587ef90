from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, field_validator

from ..spotify.models import PlaylistSummary, Track
from ..spotify.parsing import parse_playlist_id


class RecommendRequest(BaseModel):
    url: str = Field(..., description="Spotify playlist URL, URI or id")

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        parse_playlist_id(value)
        return value

    @property
    def playlist_id(self) -> str:
        return parse_playlist_id(self.url)


class RecommendResponse(BaseModel):
    playlist_id: str
    recommendations: List[Track] = []


class PlaylistsResponse(BaseModel):
    playlists: List[PlaylistSummary] = []


class InvalidateResponse(BaseModel):
    playlist_id: str
    invalidated: bool


class HealthResponse(BaseModel):
    ok: bool = True
    cache: bool = False
