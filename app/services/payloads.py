"""Typed upstream payloads and their mapping onto the shared media models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from ..models import MediaDetail, MediaSummary
from ..utils import build_image_url, coerce_int, preferred_title, strip_html, year_from_date


@dataclass(slots=True)
class MovieTvPayload:
    """A movie or TV record as returned by the TMDB REST API."""

    media_type: str
    id: int
    title: str | None = None
    overview: str | None = None
    poster: str | None = None
    release_date: str | None = None
    first_air_date: str | None = None
    genres: list[str] | None = None
    popularity: float | None = None
    runtime: int | None = None
    number_of_seasons: int | None = None
    number_of_episodes: int | None = None
    status: str | None = None

    @classmethod
    def from_json(
        cls,
        data: Mapping[str, Any],
        *,
        media_type: str,
        image_base_url: str,
    ) -> "MovieTvPayload":
        """Build a payload from a TMDB result or detail object."""

        raw_id = coerce_int(data.get("id"))
        if raw_id is None:
            raise ValueError("TMDB record without an integer id")

        genres: list[str] | None = None
        raw_genres = data.get("genres")
        if isinstance(raw_genres, list):
            genres = [
                str(genre.get("name"))
                for genre in raw_genres
                if isinstance(genre, Mapping) and genre.get("name")
            ]

        runtime = coerce_int(data.get("runtime"))
        if runtime is None:
            # TV details report a list of typical episode lengths instead.
            episode_runtimes = data.get("episode_run_time")
            if isinstance(episode_runtimes, list) and episode_runtimes:
                runtime = coerce_int(episode_runtimes[0])

        popularity = data.get("popularity")
        return cls(
            media_type=media_type,
            id=raw_id,
            title=data.get("title") or data.get("name"),
            overview=data.get("overview") or None,
            poster=build_image_url(data.get("poster_path"), image_base_url),
            release_date=data.get("release_date") or None,
            first_air_date=data.get("first_air_date") or None,
            genres=genres,
            popularity=float(popularity) if isinstance(popularity, (int, float)) else None,
            runtime=runtime,
            number_of_seasons=coerce_int(data.get("number_of_seasons")),
            number_of_episodes=coerce_int(data.get("number_of_episodes")),
            status=data.get("status"),
        )


@dataclass(slots=True)
class AnimePayload:
    """An anime record as returned by the AniList GraphQL API."""

    id: int
    titles: dict[str, str | None] = field(default_factory=dict)
    description: str | None = None
    cover_image: str | None = None
    genres: list[str] | None = None
    start_date: dict[str, int | None] = field(default_factory=dict)
    popularity: float | None = None
    episodes: int | None = None
    status: str | None = None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "AnimePayload":
        raw_id = coerce_int(data.get("id"))
        if raw_id is None:
            raise ValueError("AniList media without an integer id")
        titles = data.get("title") if isinstance(data.get("title"), Mapping) else {}
        cover = data.get("coverImage") if isinstance(data.get("coverImage"), Mapping) else {}
        start = data.get("startDate") if isinstance(data.get("startDate"), Mapping) else {}
        raw_genres = data.get("genres")
        popularity = data.get("popularity")
        return cls(
            id=raw_id,
            titles=dict(titles),
            description=data.get("description"),
            cover_image=cover.get("large") or None,
            genres=[str(genre) for genre in raw_genres] if isinstance(raw_genres, list) else None,
            start_date={
                "year": coerce_int(start.get("year")),
                "month": coerce_int(start.get("month")),
                "day": coerce_int(start.get("day")),
            },
            popularity=float(popularity) if isinstance(popularity, (int, float)) else None,
            episodes=coerce_int(data.get("episodes")),
            status=data.get("status"),
        )

    @property
    def release_date(self) -> str | None:
        year = self.start_date.get("year")
        if not year:
            return None
        month = self.start_date.get("month") or 1
        day = self.start_date.get("day") or 1
        return f"{year:04d}-{month:02d}-{day:02d}"


ProviderMediaPayload = Union[MovieTvPayload, AnimePayload]


def _movie_tv_summary(payload: MovieTvPayload) -> dict[str, Any]:
    return {
        "api_id": payload.id,
        "media_type": payload.media_type,
        "title": payload.title or "",
        "overview": payload.overview,
        "poster": payload.poster,
        "release_date": payload.release_date if payload.media_type == "movie" else None,
        "first_air_date": payload.first_air_date if payload.media_type == "tv" else None,
        "release_year": year_from_date(payload.release_date or payload.first_air_date),
        "genres": payload.genres,
        "popularity": payload.popularity,
    }


def _anime_summary(payload: AnimePayload) -> dict[str, Any]:
    return {
        "api_id": payload.id,
        "media_type": "anime",
        "title": preferred_title(payload.titles) or "",
        "overview": strip_html(payload.description),
        "poster": payload.cover_image,
        "release_date": payload.release_date,
        "release_year": payload.start_date.get("year"),
        "genres": payload.genres,
        "popularity": payload.popularity,
    }


def to_summary(payload: ProviderMediaPayload) -> MediaSummary:
    """Normalize any provider payload into a ``MediaSummary``."""

    if isinstance(payload, MovieTvPayload):
        return MediaSummary(**_movie_tv_summary(payload))
    if isinstance(payload, AnimePayload):
        return MediaSummary(**_anime_summary(payload))
    raise TypeError(f"Unsupported provider payload: {type(payload).__name__}")


def to_detail(payload: ProviderMediaPayload) -> MediaDetail:
    """Normalize any provider payload into a ``MediaDetail``."""

    if isinstance(payload, MovieTvPayload):
        fields = _movie_tv_summary(payload)
        fields.update(
            genres=payload.genres or [],
            runtime=payload.runtime,
            episodes=payload.number_of_episodes,
            number_of_seasons=payload.number_of_seasons,
            status=payload.status,
        )
        return MediaDetail(**fields)
    if isinstance(payload, AnimePayload):
        fields = _anime_summary(payload)
        fields.update(
            genres=payload.genres or [],
            episodes=payload.episodes,
            status=payload.status,
        )
        return MediaDetail(**fields)
    raise TypeError(f"Unsupported provider payload: {type(payload).__name__}")
