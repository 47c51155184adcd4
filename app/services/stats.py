"""Aggregate statistics over a user's tracked items."""

from __future__ import annotations

from collections import Counter
from typing import Any, Iterable

from pydantic import Field

from ..models import MEDIA_TYPES, WATCH_STATUSES, CamelModel, TrackedItem
from .query import sort_items

HIGHLIGHT_LIMIT = 5


class ListStatistics(CamelModel):
    """Counts, averages and distributions for one collection."""

    total: int = 0
    totals_by_media_type: dict[str, int] = Field(default_factory=dict)
    by_status: dict[str, int] = Field(default_factory=dict)
    average_rating: float | None = None
    average_rating_by_media_type: dict[str, float | None] = Field(default_factory=dict)
    genre_distribution: dict[str, int] = Field(default_factory=dict)
    release_year_distribution: dict[int, int] = Field(default_factory=dict)
    recently_completed: list[TrackedItem] = Field(default_factory=list)
    currently_watching: list[TrackedItem] = Field(default_factory=list)

    def summary(self) -> dict[str, Any]:
        """Short form: totals, status counts and the overall average."""

        return {
            "total": self.total,
            "byStatus": dict(self.by_status),
            "avgRating": self.average_rating,
        }


def _mean(values: list[int]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def compute_statistics(items: Iterable[TrackedItem]) -> ListStatistics:
    """Pure aggregation; averages are ``None`` when nothing is rated."""

    collection = list(items)
    by_media_type: Counter[str] = Counter({media_type: 0 for media_type in MEDIA_TYPES})
    by_status: Counter[str] = Counter({status: 0 for status in WATCH_STATUSES})
    ratings: list[int] = []
    ratings_by_type: dict[str, list[int]] = {media_type: [] for media_type in MEDIA_TYPES}
    genres: Counter[str] = Counter()
    years: Counter[int] = Counter()

    for item in collection:
        by_media_type[item.media_type] += 1
        by_status[item.status] += 1
        if item.rating is not None:
            ratings.append(item.rating)
            ratings_by_type[item.media_type].append(item.rating)
        genres.update(set(item.genres))
        if item.release_year:
            years[item.release_year] += 1

    completed = [
        item
        for item in collection
        if item.status == "completed" and item.date_completed is not None
    ]
    watching = [item for item in collection if item.status == "watching"]

    return ListStatistics(
        total=len(collection),
        totals_by_media_type=dict(by_media_type),
        by_status=dict(by_status),
        average_rating=_mean(ratings),
        average_rating_by_media_type={
            media_type: _mean(values) for media_type, values in ratings_by_type.items()
        },
        genre_distribution=dict(genres),
        release_year_distribution=dict(years),
        recently_completed=sort_items(completed, "dateCompleted", "desc")[:HIGHLIGHT_LIMIT],
        # Most recently added first.
        currently_watching=sort_items(watching, "dateAdded", "desc")[:HIGHLIGHT_LIMIT],
    )
