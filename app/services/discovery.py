"""Search, trending and latest lookups across every configured catalog."""

from __future__ import annotations

import asyncio
import logging

from ..errors import InvalidRequestError, ProviderError
from ..models import MEDIA_TYPES, MediaDetail, MediaSummary, SearchResults
from .cache import DiscoveryCache
from .providers import ProviderRegistry

logger = logging.getLogger(__name__)

RESULT_GROUPS = {"movie": "movies", "tv": "tv", "anime": "anime"}


def _validate_media_type(media_type: str | None, *, required: bool = False) -> str | None:
    if media_type is None or media_type == "":
        if required:
            raise InvalidRequestError("type is required")
        return None
    if media_type not in MEDIA_TYPES:
        raise InvalidRequestError(
            f"Unsupported media type {media_type!r}",
            [{"field": "type", "message": "must be one of movie, tv, anime"}],
        )
    return media_type


class DiscoveryService:
    """Fronts the provider adapters with a TTL cache and graceful degradation."""

    def __init__(self, registry: ProviderRegistry, cache: DiscoveryCache):
        self._registry = registry
        self._cache = cache

    async def search(self, query: str | None, media_type: str | None = None) -> SearchResults:
        """Search every relevant catalog; a failing catalog contributes no hits."""

        normalized = (query or "").strip()
        if not normalized:
            raise InvalidRequestError("query param q is required")
        media_type = _validate_media_type(media_type)

        key = self._cache.key("search", media_type, normalized)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        providers = self._registry.providers(media_type)
        outcomes = await asyncio.gather(
            *(provider.search(normalized, media_type) for provider in providers),
            return_exceptions=True,
        )

        results = SearchResults()
        degraded = False
        for provider, outcome in zip(providers, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, ProviderError):
                    raise outcome
                degraded = True
                logger.warning(
                    "%s search for %r failed (non-fatal): %s",
                    provider.name,
                    normalized,
                    outcome,
                )
                continue
            for summary in outcome:
                if media_type is not None and summary.media_type != media_type:
                    continue
                getattr(results, RESULT_GROUPS[summary.media_type]).append(summary)

        if not degraded:
            self._cache.set(key, results)
        return results

    async def trending(self, media_type: str | None = None) -> list[MediaSummary]:
        return await self._listing("trending", media_type)

    async def latest(self, media_type: str | None = None) -> list[MediaSummary]:
        return await self._listing("latest", media_type)

    async def details(self, media_type: str | None, api_id: int) -> MediaDetail:
        """Fetch one title; provider failures propagate to the caller."""

        validated = _validate_media_type(media_type, required=True)
        provider = self._registry.for_media_type(validated)
        return await provider.details(validated, api_id)

    async def _listing(self, operation: str, media_type: str | None) -> list[MediaSummary]:
        validated = _validate_media_type(media_type) or "movie"
        key = self._cache.key(operation, validated)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        provider = self._registry.for_media_type(validated)
        try:
            items = await getattr(provider, operation)(validated)
        except ProviderError as exc:
            logger.warning(
                "%s %s for %s failed (non-fatal): %s",
                provider.name,
                operation,
                validated,
                exc,
            )
            return []
        self._cache.set(key, items)
        return items
