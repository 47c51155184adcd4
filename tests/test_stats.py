from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.services.stats import compute_statistics

from conftest import make_item

BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_statistics_for_mixed_collection() -> None:
    items = [
        make_item(id="a", api_id=1, media_type="movie", status="completed", rating=8,
                  date_completed=BASE, genres=["Drama"], release_year=2016),
        make_item(id="b", api_id=2, media_type="tv", status="watching", rating=9,
                  genres=["Drama", "Crime"], release_year=2008),
        make_item(id="c", api_id=3, media_type="anime", status="planToWatch"),
    ]

    stats = compute_statistics(items)

    assert stats.total == 3
    assert stats.average_rating == 8.5
    assert stats.by_status == {"planToWatch": 1, "watching": 1, "completed": 1}
    assert stats.totals_by_media_type == {"movie": 1, "tv": 1, "anime": 1}
    assert stats.average_rating_by_media_type == {"movie": 8.0, "tv": 9.0, "anime": None}
    assert stats.genre_distribution == {"Drama": 2, "Crime": 1}
    assert stats.release_year_distribution == {2016: 1, 2008: 1}
    assert [item.id for item in stats.recently_completed] == ["a"]
    assert [item.id for item in stats.currently_watching] == ["b"]
    assert stats.summary() == {
        "total": 3,
        "byStatus": {"planToWatch": 1, "watching": 1, "completed": 1},
        "avgRating": 8.5,
    }


def test_empty_collection_has_no_average() -> None:
    stats = compute_statistics([])

    assert stats.total == 0
    assert stats.average_rating is None
    assert stats.by_status == {"planToWatch": 0, "watching": 0, "completed": 0}


def test_highlights_are_capped_and_ordered() -> None:
    items = [
        make_item(id=f"w{index}", api_id=index, status="watching", date_added=BASE + timedelta(days=index))
        for index in range(7)
    ]

    stats = compute_statistics(items)

    assert [item.id for item in stats.currently_watching] == ["w6", "w5", "w4", "w3", "w2"]


def test_dump_uses_camel_case_keys() -> None:
    dumped = compute_statistics([make_item(rating=6)]).model_dump(mode="json", by_alias=True)

    assert dumped["averageRating"] == 6.0
    assert "genreDistribution" in dumped
    assert dumped["recentlyCompleted"] == []


def test_average_ignores_unrated_items() -> None:
    items = [
        make_item(id="m", api_id=1, media_type="movie", status="completed", rating=8, date_completed=BASE),
        make_item(id="t", api_id=2, media_type="tv", status="completed", rating=9, date_completed=BASE),
        make_item(id="a", api_id=3, media_type="anime", status="watching"),
    ]

    stats = compute_statistics(items)

    assert stats.total == 3
    assert stats.average_rating == 8.5
    assert stats.by_status == {"completed": 2, "watching": 1, "planToWatch": 0}
