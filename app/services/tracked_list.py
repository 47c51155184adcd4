"""Per-user tracked-item state: adds, patches, season toggles and removal."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import (
    DuplicateItemError,
    InvalidMediaTypeError,
    InvalidRequestError,
    ItemNotFoundError,
    UserNotFoundError,
)
from ..models import (
    SEASONAL_MEDIA_TYPES,
    NewTrackedItem,
    SeasonToggle,
    TrackedItem,
    TrackedItemPatch,
    UserDocument,
)
from .enrichment import ENRICHED_FIELDS, EnrichmentResult, MetadataEnricher
from .query import ListQuery, run_query
from .seasons import DateAction, SeasonEvent, resolve_transition
from .stats import ListStatistics, compute_statistics
from .store import DocumentStore

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

PATCHABLE_FIELDS: tuple[str, ...] = (
    "status",
    "rating",
    "self_note",
    "watched_seasons",
    "date_completed",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_payload(model: type[ModelT], payload: Mapping[str, Any] | ModelT) -> ModelT:
    """Validate raw input, reporting problems as ``InvalidRequestError``."""

    if isinstance(payload, model):
        return payload
    if not isinstance(payload, Mapping):
        raise InvalidRequestError("Request body must be an object")
    try:
        return model.model_validate(dict(payload))
    except ValidationError as exc:
        details = [
            {
                "field": ".".join(str(part) for part in error["loc"]),
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        summary = "; ".join(f"{entry['field']}: {entry['message']}" for entry in details)
        raise InvalidRequestError(summary or "Invalid request", details) from exc


class ListService:
    """Owns the tracked-item lifecycle for every user."""

    def __init__(
        self,
        store: DocumentStore,
        enricher: MetadataEnricher,
        *,
        self_note_max_length: int = 1_000,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._enricher = enricher
        self._self_note_max_length = self_note_max_length
        self._clock = clock

    @property
    def store(self) -> DocumentStore:
        return self._store

    async def add(
        self, user_id: str, payload: Mapping[str, Any] | NewTrackedItem
    ) -> TrackedItem:
        """Start tracking a title; a second add of the same title is rejected."""

        request = parse_payload(NewTrackedItem, payload)
        self._check_note(request.self_note)

        existing = await self._store.find_user_by_natural_key(
            user_id, request.api_id, request.media_type
        )
        if existing is not None:
            raise DuplicateItemError(existing)

        user = await self._load_user(user_id)
        now = self._clock()
        status = request.status or "planToWatch"
        item = TrackedItem(
            id=uuid.uuid4().hex,
            api_id=request.api_id,
            media_type=request.media_type,
            title=request.title,
            poster=request.poster,
            overview=request.overview,
            release_date=request.release_date,
            first_air_date=request.first_air_date,
            genres=request.genres,
            release_year=request.release_year,
            status=status,
            rating=request.rating,
            self_note=request.self_note,
            date_added=now,
            date_completed=now if status == "completed" else None,
        )
        user.tracked_items.append(item)
        await self._store.save_user(user)
        logger.info(
            "User %s added %s %s as %s", user_id, item.media_type, item.api_id, status
        )
        return item

    async def update(
        self,
        user_id: str,
        item_id: str,
        payload: Mapping[str, Any] | TrackedItemPatch,
    ) -> TrackedItem:
        """Apply a partial patch limited to the user-editable fields."""

        patch = parse_payload(TrackedItemPatch, payload)
        supplied = patch.model_fields_set & set(PATCHABLE_FIELDS)
        user = await self._load_user(user_id)
        item = self._find_item(user, item_id)

        updates: dict[str, Any] = {name: getattr(patch, name) for name in supplied}
        if "status" in updates and updates["status"] is None:
            raise InvalidRequestError(
                "status may not be null",
                [{"field": "status", "message": "may not be null"}],
            )
        if "self_note" in updates:
            self._check_note(updates["self_note"])
        if "watched_seasons" in updates:
            seasons = updates["watched_seasons"] or []
            if seasons and item.media_type not in SEASONAL_MEDIA_TYPES:
                raise InvalidMediaTypeError("Season tracking not available for movies")
            updates["watched_seasons"] = seasons

        updated = item.model_copy(update=updates)
        if updated.status == "completed":
            if updated.date_completed is None:
                updated = updated.model_copy(update={"date_completed": self._clock()})
        elif updated.date_completed is not None:
            updated = updated.model_copy(update={"date_completed": None})

        user.replace_item(updated)
        await self._store.save_user(user)
        return updated

    async def toggle_season(
        self,
        user_id: str,
        item_id: str,
        season_number: Any,
        total_seasons: Any = None,
    ) -> TrackedItem:
        """Flip one season's watched flag and derive the resulting status."""

        toggle = parse_payload(
            SeasonToggle,
            {"season_number": season_number, "total_seasons": total_seasons},
        )
        user = await self._load_user(user_id)
        item = self._find_item(user, item_id)
        if item.media_type not in SEASONAL_MEDIA_TYPES:
            raise InvalidMediaTypeError("Season tracking not available for movies")

        watched = set(item.watched_seasons)
        if toggle.season_number in watched:
            watched.discard(toggle.season_number)
            event = SeasonEvent.REMOVED
        else:
            watched.add(toggle.season_number)
            event = SeasonEvent.ADDED

        updates: dict[str, Any] = {"watched_seasons": sorted(watched)}
        transition = resolve_transition(
            event, item.status, len(watched), toggle.total_seasons
        )
        if transition is not None:
            updates["status"] = transition.status
            if transition.date_completed is DateAction.SET:
                updates["date_completed"] = self._clock()
            elif transition.date_completed is DateAction.CLEAR:
                updates["date_completed"] = None

        updated = item.model_copy(update=updates)
        user.replace_item(updated)
        await self._store.save_user(user)
        return updated

    async def remove(self, user_id: str, item_id: str) -> None:
        """Hard-delete an item; unknown ids raise ``ItemNotFoundError``."""

        removed = await self._store.delete_tracked_item(user_id, item_id)
        if removed:
            logger.info("User %s removed tracked item %s", user_id, item_id)
            return
        await self._load_user(user_id)
        raise ItemNotFoundError(item_id)

    async def get_items(self, user_id: str) -> list[TrackedItem]:
        """Return the user's items with missing metadata filled in."""

        user = await self._load_user(user_id)
        results = await self._enricher.enrich_many(user.tracked_items)
        await self._persist_enrichment(user_id, results)
        return [result.item for result in results]

    async def query(self, user_id: str, criteria: ListQuery) -> list[TrackedItem]:
        return run_query(await self.get_items(user_id), criteria)

    async def statistics(self, user_id: str) -> ListStatistics:
        user = await self._load_user(user_id)
        return compute_statistics(user.tracked_items)

    async def backfill_metadata(self) -> int:
        """Enrich and persist sparse items for every user; returns items updated."""

        updated = 0
        for user_id in await self._store.list_user_ids():
            user = await self._store.find_user_by_id(user_id)
            if user is None:
                continue
            results = await self._enricher.enrich_many(user.tracked_items)
            updated += await self._persist_enrichment(user_id, results)
        logger.info("Metadata backfill updated %s items", updated)
        return updated

    async def _persist_enrichment(
        self, user_id: str, results: list[EnrichmentResult]
    ) -> int:
        """Write fetched metadata onto the freshest copy of the user document."""

        fetched = {
            result.provided.id: result.provided
            for result in results
            if result.provided is not None
        }
        if not fetched:
            return 0
        user = await self._store.find_user_by_id(user_id)
        if user is None:
            return 0

        changed = 0
        items: list[TrackedItem] = []
        for item in user.tracked_items:
            source = fetched.get(item.id)
            if source is None:
                items.append(item)
                continue
            updates = {
                name: getattr(source, name)
                for name in ENRICHED_FIELDS
                if not getattr(item, name) and getattr(source, name)
            }
            if updates:
                changed += 1
                item = item.model_copy(update=updates)
            items.append(item)
        if changed:
            user.tracked_items = items
            await self._store.save_user(user)
        return changed

    async def _load_user(self, user_id: str) -> UserDocument:
        user = await self._store.find_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    @staticmethod
    def _find_item(user: UserDocument, item_id: str) -> TrackedItem:
        item = user.find_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def _check_note(self, note: str | None) -> None:
        if note is not None and len(note) > self._self_note_max_length:
            raise InvalidRequestError(
                f"Note must not exceed {self._self_note_max_length} characters",
                [{"field": "selfNote", "message": "too long"}],
            )
