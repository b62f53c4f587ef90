"""Typed views of the Spotify Web API payloads the backend consumes.

Each upstream response shape gets its own model so call sites never poke at
raw dictionaries. Unknown fields are ignored; ``null`` collections from the
API are read as empty ones.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

T = TypeVar("T")

DEFAULT_IMAGE_SIZE = 300


def _empty_list(value: Any) -> Any:
    return [] if value is None else value


def _empty_dict(value: Any) -> Any:
    return {} if value is None else value


class SpotifyModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Image(SpotifyModel):
    url: str
    height: Optional[int] = None
    width: Optional[int] = None


def default_image(url: str) -> Image:
    return Image(url=url, height=DEFAULT_IMAGE_SIZE, width=DEFAULT_IMAGE_SIZE)


class Artist(SpotifyModel):
    id: Optional[str] = None
    name: str = ""
    genres: List[str] = Field(default_factory=list)
    popularity: Optional[int] = None
    images: List[Image] = Field(default_factory=list)
    external_urls: Dict[str, str] = Field(default_factory=dict)

    @field_validator("genres", "images", mode="before")
    @classmethod
    def _null_lists(cls, v: Any) -> Any:
        return _empty_list(v)

    @field_validator("external_urls", mode="before")
    @classmethod
    def _null_dicts(cls, v: Any) -> Any:
        return _empty_dict(v)


class Album(SpotifyModel):
    id: Optional[str] = None
    name: str = ""
    release_date: Optional[str] = None
    images: List[Image] = Field(default_factory=list)
    artists: List[Artist] = Field(default_factory=list)
    # Only populated by the full album endpoint.
    tracks: Optional[AlbumTracks] = None

    @field_validator("images", "artists", mode="before")
    @classmethod
    def _null_lists(cls, v: Any) -> Any:
        return _empty_list(v)


class Track(SpotifyModel):
    id: Optional[str] = None
    name: str = ""
    popularity: Optional[int] = None
    artists: List[Artist] = Field(default_factory=list)
    album: Optional[Album] = None
    duration_ms: Optional[int] = None
    preview_url: Optional[str] = None
    external_urls: Dict[str, str] = Field(default_factory=dict)

    @field_validator("artists", mode="before")
    @classmethod
    def _null_lists(cls, v: Any) -> Any:
        return _empty_list(v)

    @field_validator("external_urls", mode="before")
    @classmethod
    def _null_dicts(cls, v: Any) -> Any:
        return _empty_dict(v)

    @computed_field
    @property
    def external_url(self) -> Optional[str]:
        return self.external_urls.get("spotify")

    @property
    def has_artwork(self) -> bool:
        return self.album is not None and bool(self.album.images)

    @property
    def is_displayable(self) -> bool:
        return self.has_artwork and bool(self.artists) and bool(self.name.strip())


class AlbumTracks(SpotifyModel):
    items: List[Track] = Field(default_factory=list)
    next: Optional[str] = None
    total: Optional[int] = None


class Paging(SpotifyModel, Generic[T]):
    items: List[T] = Field(default_factory=list)
    next: Optional[str] = None
    total: Optional[int] = None

    @field_validator("items", mode="before")
    @classmethod
    def _null_lists(cls, v: Any) -> Any:
        return _empty_list(v)


class PlaylistTrackItem(SpotifyModel):
    added_at: Optional[str] = None
    track: Optional[Track] = None


class ArtistsResponse(SpotifyModel):
    artists: List[Optional[Artist]] = Field(default_factory=list)


class AlbumsResponse(SpotifyModel):
    albums: List[Optional[Album]] = Field(default_factory=list)


class ArtistSearchResponse(SpotifyModel):
    artists: Paging[Artist] = Field(default_factory=Paging[Artist])


class TopTracksResponse(SpotifyModel):
    tracks: List[Track] = Field(default_factory=list)


class UserProfile(SpotifyModel):
    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    images: List[Image] = Field(default_factory=list)
    country: Optional[str] = None
    product: Optional[str] = None

    @field_validator("images", mode="before")
    @classmethod
    def _null_lists(cls, v: Any) -> Any:
        return _empty_list(v)


class TracksReference(SpotifyModel):
    href: Optional[str] = None
    total: int = 0


class PlaylistSummary(SpotifyModel):
    id: str
    name: str = ""
    description: Optional[str] = None
    images: List[Image] = Field(default_factory=list)
    tracks: Optional[TracksReference] = None

    @field_validator("images", mode="before")
    @classmethod
    def _null_lists(cls, v: Any) -> Any:
        return _empty_list(v)


class CachedRecommendations(SpotifyModel):
    tracks: List[Track] = Field(default_factory=list)
    timestamp: datetime


Album.model_rebuild()
Track.model_rebuild()
