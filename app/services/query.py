"""In-memory filtering, sorting and paging over tracked items."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Literal, Sequence

from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

from ..models import MediaType, TrackedItem, WatchStatus

SortKey = Literal["dateAdded", "rating", "dateCompleted"]
SortOrder = Literal["asc", "desc"]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

SORT_KEYS: dict[str, Callable[[TrackedItem], Any]] = {
    "dateAdded": lambda item: item.date_added,
    "rating": lambda item: item.rating or 0,
    "dateCompleted": lambda item: item.date_completed or EPOCH,
}


class ListQuery(BaseModel):
    """Normalized view of the list query parameters."""

    media_type: MediaType | None = Field(
        default=None, validation_alias=AliasChoices("mediaType", "media_type", "type")
    )
    status: WatchStatus | None = None
    min_rating: int | None = Field(
        default=None, ge=1, le=10, validation_alias=AliasChoices("minRating", "min_rating")
    )
    max_rating: int | None = Field(
        default=None, ge=1, le=10, validation_alias=AliasChoices("maxRating", "max_rating")
    )
    sort_by: SortKey = Field(
        default="dateAdded", validation_alias=AliasChoices("sortBy", "sort_by")
    )
    order: SortOrder = "desc"
    offset: int = Field(default=0, ge=0)
    limit: int | None = Field(default=None, ge=1, le=500)

    @field_validator(
        "media_type", "status", "min_rating", "max_rating", "limit", mode="before"
    )
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("sort_by", "order", mode="before")
    @classmethod
    def _blank_to_default(cls, value: object, info: ValidationInfo) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "dateAdded" if info.field_name == "sort_by" else "desc"
        return value

    @field_validator("offset", mode="before")
    @classmethod
    def _blank_offset(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return 0
        return value

    @model_validator(mode="after")
    def _check_rating_bounds(self) -> "ListQuery":
        if (
            self.min_rating is not None
            and self.max_rating is not None
            and self.min_rating > self.max_rating
        ):
            raise ValueError("minRating must not exceed maxRating")
        return self


def filter_items(items: Sequence[TrackedItem], criteria: ListQuery) -> list[TrackedItem]:
    """Keep items matching every supplied predicate; unrated items fail rating bounds."""

    def _matches(item: TrackedItem) -> bool:
        if criteria.media_type is not None and item.media_type != criteria.media_type:
            return False
        if criteria.status is not None and item.status != criteria.status:
            return False
        if criteria.min_rating is not None:
            if item.rating is None or item.rating < criteria.min_rating:
                return False
        if criteria.max_rating is not None:
            if item.rating is None or item.rating > criteria.max_rating:
                return False
        return True

    return [item for item in items if _matches(item)]


def sort_items(
    items: Sequence[TrackedItem],
    key: str = "dateAdded",
    direction: str = "desc",
) -> list[TrackedItem]:
    """Stable sort; ties keep their input order in both directions."""

    try:
        key_func = SORT_KEYS[key]
    except KeyError:
        raise ValueError(f"Unsupported sort key {key!r}") from None
    if direction not in ("asc", "desc"):
        raise ValueError(f"Unsupported sort direction {direction!r}")
    return sorted(items, key=key_func, reverse=direction == "desc")


def paginate(
    items: Sequence[TrackedItem], *, offset: int = 0, limit: int | None = None
) -> list[TrackedItem]:
    if offset < 0:
        raise ValueError("offset must not be negative")
    end = None if limit is None else offset + limit
    return list(items[offset:end])


def run_query(items: Sequence[TrackedItem], query: ListQuery) -> list[TrackedItem]:
    """Apply filter, sort and paging in that order."""

    filtered = filter_items(items, query)
    ordered = sort_items(filtered, query.sort_by, query.order)
    return paginate(ordered, offset=query.offset, limit=query.limit)
