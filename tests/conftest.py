"""Pytest configuration and shared test doubles."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.errors import MediaNotFoundError  # noqa: E402
from app.models import MediaDetail, MediaSummary, TrackedItem  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_item(**overrides: Any) -> TrackedItem:
    """Build a tracked item with sensible defaults."""

    base: dict[str, Any] = {
        "id": "item-1",
        "api_id": 1,
        "media_type": "movie",
        "title": "Example",
        "poster": "https://image.example/poster.jpg",
        "date_added": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    base.update(overrides)
    return TrackedItem(**base)


class FakeProvider:
    """In-memory catalog adapter recording every call it receives."""

    def __init__(
        self,
        name: str = "fake",
        media_types: tuple[str, ...] = ("movie", "tv", "anime"),
        *,
        details: dict[tuple[str, int], MediaDetail] | None = None,
        listings: dict[str, list[MediaSummary]] | None = None,
        similar: dict[tuple[str, int], list[MediaSummary]] | None = None,
        error: Exception | None = None,
    ):
        self.name = name
        self.media_types = media_types
        self._details = details or {}
        self._listings = listings or {}
        self._similar = similar or {}
        self.error = error
        self.calls: list[tuple[str, Any]] = []

    def _maybe_fail(self) -> None:
        if self.error is not None:
            raise self.error

    async def search(self, query: str, media_type: str | None = None) -> list[MediaSummary]:
        self.calls.append(("search", query))
        self._maybe_fail()
        return list(self._listings.get("search", []))

    async def trending(self, media_type: str) -> list[MediaSummary]:
        self.calls.append(("trending", media_type))
        self._maybe_fail()
        return list(self._listings.get("trending", []))

    async def latest(self, media_type: str) -> list[MediaSummary]:
        self.calls.append(("latest", media_type))
        self._maybe_fail()
        return list(self._listings.get("latest", []))

    async def details(self, media_type: str, api_id: int) -> MediaDetail:
        self.calls.append(("details", (media_type, api_id)))
        self._maybe_fail()
        try:
            return self._details[(media_type, api_id)]
        except KeyError:
            raise MediaNotFoundError(self.name, f"{media_type} {api_id} not found") from None

    async def similar(self, media_type: str, api_id: int) -> list[MediaSummary]:
        self.calls.append(("similar", (media_type, api_id)))
        self._maybe_fail()
        return list(self._similar.get((media_type, api_id), []))
