"""Adapter for The Movie Database (TMDB) REST catalog."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..errors import ProviderPermanentError
from ..models import MediaDetail, MediaSummary, MediaType
from .payloads import MovieTvPayload, to_detail, to_summary
from .providers import send_json
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

LATEST_PATHS: dict[str, str] = {
    "movie": "/movie/now_playing",
    "tv": "/tv/on_the_air",
}


class TMDBClient:
    """Serves movies and TV shows from TMDB."""

    name = "tmdb"
    media_types: tuple[MediaType, ...] = ("movie", "tv")

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        retry_policy: RetryPolicy,
    ):
        self._settings = settings
        self._client = http_client
        self._retry = retry_policy

    async def search(
        self, query: str, media_type: MediaType | None = None
    ) -> list[MediaSummary]:
        """Multi-search movies and TV shows, optionally keeping only one type."""

        data = await self._get(
            "/search/multi",
            params={"query": query, "include_adult": "false", "page": 1},
        )
        summaries: list[MediaSummary] = []
        for record in self._results(data):
            record_type = record.get("media_type")
            if record_type not in self.media_types:
                continue
            if media_type is not None and record_type != media_type:
                continue
            summary = self._summarize(record, record_type)
            if summary is not None:
                summaries.append(summary)
        return summaries

    async def trending(self, media_type: MediaType) -> list[MediaSummary]:
        self._check_type(media_type)
        data = await self._get(f"/trending/{media_type}/week")
        return self._summaries(data, media_type)

    async def latest(self, media_type: MediaType) -> list[MediaSummary]:
        self._check_type(media_type)
        data = await self._get(
            LATEST_PATHS[media_type], params={"region": self._settings.tmdb_region}
        )
        return self._summaries(data, media_type)

    async def details(self, media_type: MediaType, api_id: int) -> MediaDetail:
        self._check_type(media_type)
        data = await self._get(f"/{media_type}/{api_id}")
        if not isinstance(data, dict):
            raise ProviderPermanentError(self.name, "unexpected detail payload")
        try:
            return to_detail(
                MovieTvPayload.from_json(
                    data,
                    media_type=media_type,
                    image_base_url=self._settings.tmdb_image_base_url,
                )
            )
        except (TypeError, ValueError) as exc:
            raise ProviderPermanentError(
                self.name, f"malformed {media_type} {api_id}: {exc}"
            ) from exc

    async def similar(self, media_type: MediaType, api_id: int) -> list[MediaSummary]:
        self._check_type(media_type)
        data = await self._get(f"/{media_type}/{api_id}/similar")
        return self._summaries(data, media_type)

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        if not self._settings.tmdb_api_key:
            raise ProviderPermanentError(self.name, "TMDB_API_KEY not configured")
        query = {"api_key": self._settings.tmdb_api_key}
        if params:
            query.update(params)

        async def _attempt() -> Any:
            return await send_json(
                self._client,
                self.name,
                "GET",
                path,
                params=query,
                headers={"Accept": "application/json"},
            )

        return await self._retry.run(_attempt, description=f"TMDB GET {path}")

    def _results(self, data: Any) -> list[dict[str, Any]]:
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise ProviderPermanentError(self.name, "unexpected list payload")
        return [record for record in results if isinstance(record, dict)]

    def _summaries(self, data: Any, media_type: str) -> list[MediaSummary]:
        summaries: list[MediaSummary] = []
        for record in self._results(data):
            summary = self._summarize(record, media_type)
            if summary is not None:
                summaries.append(summary)
        return summaries

    def _summarize(self, record: dict[str, Any], media_type: str) -> MediaSummary | None:
        try:
            return to_summary(
                MovieTvPayload.from_json(
                    record,
                    media_type=media_type,
                    image_base_url=self._settings.tmdb_image_base_url,
                )
            )
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping malformed TMDB record %s: %s", record.get("id"), exc)
            return None

    def _check_type(self, media_type: str) -> None:
        if media_type not in self.media_types:
            raise ProviderPermanentError(self.name, f"unsupported media type {media_type}")
