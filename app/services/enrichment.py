"""Fill missing display metadata on tracked items from their catalogs."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Sequence

from ..errors import ProviderError
from ..models import FALLBACK_TITLE, MediaDetail, TrackedItem
from .providers import ProviderRegistry

logger = logging.getLogger(__name__)

ENRICHED_FIELDS: tuple[str, ...] = (
    "title",
    "poster",
    "overview",
    "release_date",
    "first_air_date",
    "genres",
    "release_year",
)


@dataclass(slots=True)
class EnrichmentResult:
    """An item after enrichment and whether a provider supplied metadata."""

    item: TrackedItem
    fetched: bool = False
    # Provider values only, without the title fallback; safe to store.
    provided: TrackedItem | None = None


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set)):
        return not value
    return False


def needs_enrichment(item: TrackedItem) -> bool:
    """An item is sparse when it lacks a title or a poster."""

    return _is_blank(item.title) or _is_blank(item.poster)


def merge_metadata(
    item: TrackedItem, detail: MediaDetail | None, *, fallback: bool = True
) -> TrackedItem:
    """Fill only blank fields; values already on the item always win.

    With ``fallback`` a title still blank afterwards becomes ``FALLBACK_TITLE``.
    """

    updates: dict[str, Any] = {}
    for name in ENRICHED_FIELDS:
        current = getattr(item, name)
        if not _is_blank(current):
            continue
        candidate = getattr(detail, name, None) if detail is not None else None
        if _is_blank(candidate):
            if name != "title" or not fallback:
                continue
            candidate = FALLBACK_TITLE
        updates[name] = candidate
    if not updates:
        return item
    return item.model_copy(update=updates)


class MetadataEnricher:
    """Looks up sparse items through the adapter serving their media type."""

    def __init__(self, registry: ProviderRegistry, *, concurrency: int = 8):
        self._registry = registry
        self._semaphore = asyncio.Semaphore(max(concurrency, 1))

    async def enrich(self, item: TrackedItem) -> TrackedItem:
        return (await self.enrich_with_outcome(item)).item

    async def enrich_with_outcome(self, item: TrackedItem) -> EnrichmentResult:
        if not needs_enrichment(item):
            return EnrichmentResult(item=item)

        try:
            provider = self._registry.for_media_type(item.media_type)
            async with self._semaphore:
                detail = await provider.details(item.media_type, item.api_id)
        except ProviderError as exc:
            logger.warning(
                "Metadata lookup failed for %s %s: %s",
                item.media_type,
                item.api_id,
                exc,
            )
            return EnrichmentResult(item=merge_metadata(item, None))

        return EnrichmentResult(
            item=merge_metadata(item, detail),
            fetched=True,
            provided=merge_metadata(item, detail, fallback=False),
        )

    async def enrich_many(self, items: Sequence[TrackedItem]) -> list[EnrichmentResult]:
        """Enrich every item concurrently; output order matches input order."""

        outcomes = await asyncio.gather(
            *(self.enrich_with_outcome(item) for item in items),
            return_exceptions=True,
        )
        results: list[EnrichmentResult] = []
        for item, outcome in zip(items, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error(
                    "Unexpected enrichment failure for %s %s",
                    item.media_type,
                    item.api_id,
                    exc_info=outcome,
                )
                results.append(EnrichmentResult(item=merge_metadata(item, None)))
                continue
            results.append(outcome)
        return results
