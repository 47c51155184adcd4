"""Suggest titles similar to the ones a user rated highly."""

from __future__ import annotations

import asyncio
import logging

from ..errors import ProviderError, UserNotFoundError
from ..models import MediaSummary, SearchResults, TrackedItem
from .discovery import RESULT_GROUPS
from .providers import ProviderRegistry
from .store import DocumentStore

logger = logging.getLogger(__name__)

MIN_SEED_RATING = 8
MAX_SEEDS = 3
MAX_PER_GROUP = 10


def pick_seeds(items: list[TrackedItem]) -> list[TrackedItem]:
    """Completed items rated at least ``MIN_SEED_RATING``, in list order."""

    return [
        item
        for item in items
        if item.status == "completed"
        and item.rating is not None
        and item.rating >= MIN_SEED_RATING
    ][:MAX_SEEDS]


class RecommendationService:
    def __init__(self, store: DocumentStore, registry: ProviderRegistry):
        self._store = store
        self._registry = registry

    async def recommend(self, user_id: str) -> SearchResults:
        user = await self._store.find_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        seeds = pick_seeds(user.tracked_items)
        outcomes = await asyncio.gather(
            *(self._similar(seed) for seed in seeds), return_exceptions=True
        )

        tracked = {item.natural_key for item in user.tracked_items}
        seen: set[tuple[int, str]] = set()
        results = SearchResults()
        for seed, outcome in zip(seeds, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, ProviderError):
                    raise outcome
                logger.warning(
                    "Similar-title lookup failed for %s %s: %s",
                    seed.media_type,
                    seed.api_id,
                    outcome,
                )
                continue
            for summary in outcome:
                key = (summary.api_id, summary.media_type)
                if key in tracked or key in seen:
                    continue
                group: list[MediaSummary] = getattr(results, RESULT_GROUPS[summary.media_type])
                if len(group) >= MAX_PER_GROUP:
                    continue
                seen.add(key)
                group.append(summary)
        return results

    async def _similar(self, seed: TrackedItem) -> list[MediaSummary]:
        provider = self._registry.for_media_type(seed.media_type)
        return await provider.similar(seed.media_type, seed.api_id)
