"""Adapter for the AniList GraphQL anime catalog."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from ..errors import MediaNotFoundError, ProviderPermanentError
from ..models import MediaDetail, MediaSummary, MediaType
from .payloads import AnimePayload, to_detail, to_summary
from .providers import send_json
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

MEDIA_FIELDS = """
    id
    title { english romaji native }
    description
    coverImage { large }
    genres
    startDate { year month day }
    popularity
    episodes
    status
"""

SEARCH_QUERY = (
    "query ($search: String, $page: Int) {"
    " Page(page: $page, perPage: 10) {"
    " media(search: $search, type: ANIME, sort: POPULARITY_DESC) {"
    + MEDIA_FIELDS
    + "} } }"
)

TRENDING_QUERY = (
    "query { Page(page: 1, perPage: 20) {"
    " media(sort: TRENDING_DESC, type: ANIME) {"
    + MEDIA_FIELDS
    + "} } }"
)

LATEST_QUERY = (
    "query ($season: MediaSeason, $year: Int) { Page(page: 1, perPage: 20) {"
    " media(season: $season, seasonYear: $year, type: ANIME, sort: POPULARITY_DESC) {"
    + MEDIA_FIELDS
    + "} } }"
)

DETAILS_QUERY = (
    "query ($id: Int) { Media(id: $id, type: ANIME) {" + MEDIA_FIELDS + "} }"
)

RECOMMENDATIONS_QUERY = (
    "query ($id: Int) { Media(id: $id, type: ANIME) {"
    " recommendations(sort: RATING_DESC) { nodes { mediaRecommendation {"
    + MEDIA_FIELDS
    + "} } } } }"
)


def broadcast_season(moment: datetime) -> tuple[str, int]:
    """Return the AniList season name and year containing ``moment``."""

    month = moment.month
    if month <= 3:
        season = "WINTER"
    elif month <= 6:
        season = "SPRING"
    elif month <= 9:
        season = "SUMMER"
    else:
        season = "FALL"
    return season, moment.year


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AniListClient:
    """Serves anime titles from AniList."""

    name = "anilist"
    media_types: tuple[MediaType, ...] = ("anime",)

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        retry_policy: RetryPolicy,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._client = http_client
        self._retry = retry_policy
        self._clock = clock

    async def search(
        self, query: str, media_type: MediaType | None = None
    ) -> list[MediaSummary]:
        data = await self._query(SEARCH_QUERY, {"search": query, "page": 1})
        return self._summaries(self._page_media(data))

    async def trending(self, media_type: MediaType = "anime") -> list[MediaSummary]:
        data = await self._query(TRENDING_QUERY)
        return self._summaries(self._page_media(data))

    async def latest(self, media_type: MediaType = "anime") -> list[MediaSummary]:
        season, year = broadcast_season(self._clock())
        data = await self._query(LATEST_QUERY, {"season": season, "year": year})
        return self._summaries(self._page_media(data))

    async def details(self, media_type: MediaType, api_id: int) -> MediaDetail:
        data = await self._query(DETAILS_QUERY, {"id": int(api_id)})
        media = data.get("Media")
        if not isinstance(media, dict):
            raise MediaNotFoundError(self.name, f"anime {api_id} not found")
        try:
            return to_detail(AnimePayload.from_json(media))
        except (TypeError, ValueError) as exc:
            raise ProviderPermanentError(self.name, str(exc)) from exc

    async def similar(self, media_type: MediaType, api_id: int) -> list[MediaSummary]:
        data = await self._query(RECOMMENDATIONS_QUERY, {"id": int(api_id)})
        media = data.get("Media") or {}
        nodes = ((media.get("recommendations") or {}).get("nodes")) or []
        recommended = [
            node.get("mediaRecommendation")
            for node in nodes
            if isinstance(node, dict)
        ]
        return self._summaries([entry for entry in recommended if isinstance(entry, dict)])

    async def _query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = variables

        async def _attempt() -> Any:
            return await send_json(
                self._client,
                self.name,
                "POST",
                "",
                json=body,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
            )

        payload = await self._retry.run(_attempt, description="AniList query")
        if not isinstance(payload, dict):
            raise ProviderPermanentError(self.name, "unexpected GraphQL payload")
        data = payload.get("data")
        if not isinstance(data, dict):
            errors = payload.get("errors") or []
            message = "; ".join(
                str(error.get("message")) for error in errors if isinstance(error, dict)
            )
            if any(isinstance(error, dict) and error.get("status") == 404 for error in errors):
                raise MediaNotFoundError(self.name, message or "not found", status_code=404)
            raise ProviderPermanentError(self.name, message or "response without data")
        return data

    def _page_media(self, data: dict[str, Any]) -> list[dict[str, Any]]:
        page = data.get("Page")
        media = page.get("media") if isinstance(page, dict) else None
        if not isinstance(media, list):
            raise ProviderPermanentError(self.name, "unexpected page payload")
        return [entry for entry in media if isinstance(entry, dict)]

    def _summaries(self, media: list[dict[str, Any]]) -> list[MediaSummary]:
        summaries: list[MediaSummary] = []
        for entry in media:
            try:
                summaries.append(to_summary(AnimePayload.from_json(entry)))
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping malformed AniList media %s: %s", entry.get("id"), exc)
        return summaries
