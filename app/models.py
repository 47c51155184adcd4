"""Pydantic models describing tracked items and catalog payloads."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MediaType = Literal["movie", "tv", "anime"]
WatchStatus = Literal["planToWatch", "watching", "completed"]

MEDIA_TYPES: tuple[MediaType, ...] = ("movie", "tv", "anime")
WATCH_STATUSES: tuple[WatchStatus, ...] = ("planToWatch", "watching", "completed")
SEASONAL_MEDIA_TYPES: frozenset[str] = frozenset({"tv", "anime"})

FALLBACK_TITLE = "Unknown Title"


def ensure_aware(value: datetime | None) -> datetime | None:
    """Interpret naive datetimes as UTC so comparisons never mix kinds."""

    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def normalize_seasons(value: object) -> object:
    """Return season numbers as a sorted list without duplicates."""

    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        try:
            return sorted({int(season) for season in value})
        except (TypeError, ValueError):
            return value
    return value


def normalize_genres(value: object) -> object:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        genres: list[str] = []
        for genre in value:
            name = str(genre).strip()
            if name and name not in genres:
                genres.append(name)
        return genres
    return value


class CamelModel(BaseModel):
    """Base model exposing camelCase names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MediaSummary(CamelModel):
    """Provider-neutral view of a catalog title."""

    api_id: int
    media_type: MediaType
    title: str
    overview: str | None = None
    poster: str | None = None
    release_date: str | None = None
    first_air_date: str | None = None
    release_year: int | None = None
    genres: list[str] | None = None
    popularity: float | None = None


class MediaDetail(MediaSummary):
    """Summary plus the fields only a by-id lookup returns."""

    genres: list[str] = Field(default_factory=list)
    runtime: int | None = None
    episodes: int | None = None
    number_of_seasons: int | None = None
    status: str | None = None


class SearchResults(CamelModel):
    """Search hits grouped by media type."""

    movies: list[MediaSummary] = Field(default_factory=list)
    tv: list[MediaSummary] = Field(default_factory=list)
    anime: list[MediaSummary] = Field(default_factory=list)


class TrackedItem(CamelModel):
    """A user's personal record of a title."""

    id: str
    api_id: int
    media_type: MediaType
    title: str | None = None
    poster: str | None = None
    overview: str | None = None
    release_date: str | None = None
    first_air_date: str | None = None
    genres: list[str] = Field(default_factory=list)
    release_year: int | None = None
    status: WatchStatus = "planToWatch"
    rating: int | None = Field(default=None, ge=1, le=10)
    self_note: str | None = None
    watched_seasons: list[int] = Field(default_factory=list)
    date_added: datetime
    date_completed: datetime | None = None

    @property
    def natural_key(self) -> tuple[int, str]:
        return self.api_id, self.media_type

    @field_validator("watched_seasons", mode="before")
    @classmethod
    def _sort_seasons(cls, value: object) -> object:
        return normalize_seasons(value)

    @field_validator("genres", mode="before")
    @classmethod
    def _clean_genres(cls, value: object) -> object:
        return normalize_genres(value)

    @field_validator("date_added", "date_completed")
    @classmethod
    def _aware(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value)


class NewTrackedItem(CamelModel):
    """Payload accepted when a title is added to a list."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    api_id: int
    media_type: MediaType
    status: WatchStatus | None = None
    rating: int | None = Field(default=None, ge=1, le=10)
    self_note: str | None = None
    title: str | None = None
    poster: str | None = None
    overview: str | None = None
    release_date: str | None = None
    first_air_date: str | None = None
    genres: list[str] = Field(default_factory=list)
    release_year: int | None = None

    @field_validator("genres", mode="before")
    @classmethod
    def _clean_genres(cls, value: object) -> object:
        return normalize_genres(value)

    @field_validator("title", "poster", "overview", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or None
        return value


class TrackedItemPatch(CamelModel):
    """Partial update; only the fields present in the payload are applied."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    status: WatchStatus | None = None
    rating: int | None = Field(default=None, ge=1, le=10)
    self_note: str | None = None
    watched_seasons: list[int] | None = None
    date_completed: datetime | None = None

    @field_validator("watched_seasons", mode="before")
    @classmethod
    def _sort_seasons(cls, value: object) -> object:
        if value is None:
            return None
        return normalize_seasons(value)

    @field_validator("watched_seasons")
    @classmethod
    def _positive_seasons(cls, value: list[int] | None) -> list[int] | None:
        if value and any(season < 1 for season in value):
            raise ValueError("Season numbers must be positive integers")
        return value

    @field_validator("date_completed")
    @classmethod
    def _aware(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value)


class SeasonToggle(CamelModel):
    """Payload for marking a season watched or unwatched."""

    season_number: int = Field(ge=1)
    total_seasons: int | None = Field(default=None, ge=1)


class UserDocument(CamelModel):
    """A user together with the tracked items it owns."""

    id: str
    email: str
    username: str
    tracked_items: list[TrackedItem] = Field(default_factory=list)
    created_at: datetime | None = None

    def find_item(self, item_id: str) -> TrackedItem | None:
        for item in self.tracked_items:
            if item.id == item_id:
                return item
        return None

    def find_by_natural_key(self, api_id: int, media_type: str) -> TrackedItem | None:
        for item in self.tracked_items:
            if item.api_id == api_id and item.media_type == media_type:
                return item
        return None

    def replace_item(self, updated: TrackedItem) -> None:
        self.tracked_items = [
            updated if item.id == updated.id else item for item in self.tracked_items
        ]
