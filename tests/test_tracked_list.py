"""List service behaviour against a real SQLite document store."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import pytest

from app.database import Database
from app.errors import (
    DuplicateItemError,
    InvalidMediaTypeError,
    InvalidRequestError,
    ItemNotFoundError,
    ProviderTransientError,
    UserNotFoundError,
)
from app.models import FALLBACK_TITLE, MediaDetail
from app.services.enrichment import MetadataEnricher
from app.services.providers import ProviderRegistry
from app.services.query import ListQuery
from app.services.store import SqlDocumentStore
from app.services.tracked_list import ListService

from conftest import FakeProvider, FrozenClock


@asynccontextmanager
async def list_service(
    tmp_path, provider: FakeProvider | None = None
) -> AsyncIterator[tuple[ListService, str, FrozenClock]]:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'list.db'}")
    await database.create_all()
    try:
        store = SqlDocumentStore(database.session_factory)
        clock = FrozenClock()
        registry = ProviderRegistry([provider or FakeProvider()])
        service = ListService(store, MetadataEnricher(registry), clock=clock)
        user = await store.create_user("Viewer@Example.com", "viewer")
        yield service, user.id, clock
    finally:
        await database.dispose()


@pytest.mark.anyio("asyncio")
async def test_add_rejects_duplicate_natural_key(tmp_path) -> None:
    async with list_service(tmp_path) as (service, user_id, _):
        first = await service.add(user_id, {"apiId": 603, "mediaType": "movie", "title": "The Matrix"})

        with pytest.raises(DuplicateItemError) as excinfo:
            await service.add(user_id, {"apiId": 603, "mediaType": "movie"})

        assert excinfo.value.item.id == first.id
        # Same id under a different media type is a different title.
        await service.add(user_id, {"apiId": 603, "mediaType": "tv"})
        assert len(await service.get_items(user_id)) == 2


@pytest.mark.anyio("asyncio")
async def test_add_validates_payload(tmp_path) -> None:
    async with list_service(tmp_path) as (service, user_id, _):
        with pytest.raises(InvalidRequestError) as excinfo:
            await service.add(user_id, {"apiId": "abc", "mediaType": "movie"})

        assert excinfo.value.details[0]["field"] == "apiId"

        with pytest.raises(InvalidRequestError):
            await service.add(user_id, {"apiId": 1, "mediaType": "movie", "selfNote": "x" * 1001})


@pytest.mark.anyio("asyncio")
async def test_add_for_unknown_user_fails(tmp_path) -> None:
    async with list_service(tmp_path) as (service, _, _):
        with pytest.raises(UserNotFoundError):
            await service.add("missing", {"apiId": 1, "mediaType": "movie"})


@pytest.mark.anyio("asyncio")
async def test_update_to_completed_sets_completion_date(tmp_path) -> None:
    async with list_service(tmp_path) as (service, user_id, clock):
        item = await service.add(user_id, {"apiId": 1, "mediaType": "movie", "title": "Heat"})
        assert item.date_completed is None

        clock.advance(days=2)
        updated = await service.update(user_id, item.id, {"status": "completed", "rating": 9})

        assert updated.status == "completed"
        assert updated.rating == 9
        assert updated.date_completed == clock.now
        assert updated.date_added == item.date_added

        reopened = await service.update(user_id, item.id, {"status": "watching"})
        assert reopened.date_completed is None


@pytest.mark.anyio("asyncio")
async def test_update_ignores_fields_outside_allow_list(tmp_path) -> None:
    async with list_service(tmp_path) as (service, user_id, _):
        item = await service.add(user_id, {"apiId": 1, "mediaType": "movie", "title": "Heat"})

        updated = await service.update(
            user_id, item.id, {"apiId": 999, "title": "Changed", "selfNote": "rewatch"}
        )

        assert updated.api_id == 1
        assert updated.title == "Heat"
        assert updated.self_note == "rewatch"


@pytest.mark.anyio("asyncio")
async def test_update_unknown_item_is_not_found(tmp_path) -> None:
    async with list_service(tmp_path) as (service, user_id, _):
        with pytest.raises(ItemNotFoundError):
            await service.update(user_id, "nope", {"rating": 5})


@pytest.mark.anyio("asyncio")
async def test_movies_cannot_track_seasons(tmp_path) -> None:
    async with list_service(tmp_path) as (service, user_id, _):
        movie = await service.add(user_id, {"apiId": 1, "mediaType": "movie", "title": "Heat"})

        with pytest.raises(InvalidMediaTypeError):
            await service.toggle_season(user_id, movie.id, 1)
        with pytest.raises(InvalidMediaTypeError):
            await service.update(user_id, movie.id, {"watchedSeasons": [1]})


@pytest.mark.anyio("asyncio")
async def test_toggling_every_season_completes_the_show(tmp_path) -> None:
    async with list_service(tmp_path) as (service, user_id, clock):
        show = await service.add(user_id, {"apiId": 1399, "mediaType": "tv", "title": "GoT"})

        statuses = []
        completion_dates = []
        for season in (1, 2, 3):
            clock.advance(hours=1)
            show = await service.toggle_season(user_id, show.id, season, 3)
            statuses.append(show.status)
            completion_dates.append(show.date_completed)

        assert statuses == ["watching", "watching", "completed"]
        assert completion_dates == [None, None, clock.now]
        assert show.watched_seasons == [1, 2, 3]


@pytest.mark.anyio("asyncio")
async def test_removing_a_season_reopens_completed_show(tmp_path) -> None:
    async with list_service(tmp_path) as (service, user_id, _):
        show = await service.add(
            user_id, {"apiId": 1399, "mediaType": "tv", "title": "GoT", "status": "completed"}
        )
        show = await service.update(user_id, show.id, {"watchedSeasons": [3, 1, 2]})
        assert show.status == "completed"
        assert show.date_completed is not None

        show = await service.toggle_season(user_id, show.id, 2, 3)

        assert show.watched_seasons == [1, 3]
        assert show.status == "watching"
        assert show.date_completed is None


@pytest.mark.anyio("asyncio")
async def test_toggling_twice_restores_original_state(tmp_path) -> None:
    async with list_service(tmp_path) as (service, user_id, _):
        original = await service.add(user_id, {"apiId": 21, "mediaType": "anime", "title": "Mushishi"})

        toggled = await service.toggle_season(user_id, original.id, 1)
        restored = await service.toggle_season(user_id, original.id, 1)

        assert toggled.status == "watching"
        assert restored.watched_seasons == original.watched_seasons
        assert restored.status == original.status
        assert restored.date_completed == original.date_completed


@pytest.mark.anyio("asyncio")
async def test_invalid_season_number_is_rejected(tmp_path) -> None:
    async with list_service(tmp_path) as (service, user_id, _):
        show = await service.add(user_id, {"apiId": 1, "mediaType": "tv"})

        with pytest.raises(InvalidRequestError):
            await service.toggle_season(user_id, show.id, 0)


@pytest.mark.anyio("asyncio")
async def test_remove_deletes_item(tmp_path) -> None:
    async with list_service(tmp_path) as (service, user_id, _):
        item = await service.add(user_id, {"apiId": 1, "mediaType": "movie", "title": "Heat"})

        await service.remove(user_id, item.id)

        assert await service.get_items(user_id) == []
        with pytest.raises(ItemNotFoundError):
            await service.remove(user_id, item.id)


@pytest.mark.anyio("asyncio")
async def test_get_items_persists_fetched_metadata(tmp_path) -> None:
    detail = MediaDetail(
        api_id=329865,
        media_type="movie",
        title="Arrival",
        poster="https://img.example/arrival.jpg",
        genres=["Drama"],
    )
    provider = FakeProvider(details={("movie", 329865): detail})
    async with list_service(tmp_path, provider) as (service, user_id, _):
        await service.add(user_id, {"apiId": 329865, "mediaType": "movie"})

        first = await service.get_items(user_id)
        second = await service.get_items(user_id)

        assert first[0].title == "Arrival"
        assert second[0].genres == ["Drama"]
        # The second read is served from the stored copy.
        assert len([call for call in provider.calls if call[0] == "details"]) == 1


@pytest.mark.anyio("asyncio")
async def test_get_items_survives_provider_outage(tmp_path) -> None:
    provider = FakeProvider(error=ProviderTransientError("tmdb", "upstream returned 502"))
    async with list_service(tmp_path, provider) as (service, user_id, _):
        await service.add(user_id, {"apiId": 5, "mediaType": "movie", "overview": "kept"})

        items = await service.get_items(user_id)

        assert items[0].title == FALLBACK_TITLE
        assert items[0].overview == "kept"
        stats = await service.statistics(user_id)
        assert stats.total == 1


@pytest.mark.anyio("asyncio")
async def test_query_and_statistics(tmp_path) -> None:
    async with list_service(tmp_path) as (service, user_id, clock):
        for api_id, rating in ((1, None), (2, 7), (3, 8), (4, 10)):
            clock.advance(minutes=1)
            await service.add(
                user_id,
                {"apiId": api_id, "mediaType": "movie", "title": f"M{api_id}", "poster": "p", "rating": rating},
            )

        top = await service.query(user_id, ListQuery(minRating=8, sortBy="rating", order="desc"))
        stats = await service.statistics(user_id)

        assert [item.rating for item in top] == [10, 8]
        assert stats.total == 4
        assert stats.average_rating == pytest.approx(25 / 3)


@pytest.mark.anyio("asyncio")
async def test_backfill_updates_sparse_items_for_every_user(tmp_path) -> None:
    detail = MediaDetail(api_id=7, media_type="tv", title="Filled", poster="https://img.example/7.jpg")
    provider = FakeProvider(details={("tv", 7): detail})
    async with list_service(tmp_path, provider) as (service, user_id, _):
        await service.add(user_id, {"apiId": 7, "mediaType": "tv"})
        await service.add(user_id, {"apiId": 8, "mediaType": "tv", "title": "Done", "poster": "p"})

        assert await service.backfill_metadata() == 1
        assert await service.backfill_metadata() == 0


@pytest.mark.anyio("asyncio")
async def test_title_fallback_is_not_stored_when_provider_has_no_title(tmp_path) -> None:
    untitled = MediaDetail(api_id=42, media_type="movie", title="", poster="https://img.example/42.jpg")
    details = {("movie", 42): untitled}
    provider = FakeProvider(details=details)
    async with list_service(tmp_path, provider) as (service, user_id, _):
        await service.add(user_id, {"apiId": 42, "mediaType": "movie"})

        shown = await service.get_items(user_id)
        stored = (await service.store.find_user_by_id(user_id)).tracked_items[0]

        assert shown[0].title == FALLBACK_TITLE
        assert stored.title is None
        assert stored.poster == "https://img.example/42.jpg"

        # A later lookup that does return a title can still fill it in.
        details[("movie", 42)] = untitled.model_copy(update={"title": "Found"})
        await service.get_items(user_id)
        refreshed = (await service.store.find_user_by_id(user_id)).tracked_items[0]

        assert refreshed.title == "Found"
