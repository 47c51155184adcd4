"""Common plumbing for upstream catalog adapters."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol

import httpx

from ..errors import (
    MediaNotFoundError,
    ProviderError,
    ProviderPermanentError,
    ProviderTransientError,
)
from ..models import MediaDetail, MediaSummary, MediaType

logger = logging.getLogger(__name__)


class MediaProvider(Protocol):
    """Contract implemented by every catalog adapter."""

    name: str
    media_types: tuple[MediaType, ...]

    async def search(self, query: str, media_type: MediaType | None = None) -> list[MediaSummary]:
        ...

    async def trending(self, media_type: MediaType) -> list[MediaSummary]:
        ...

    async def latest(self, media_type: MediaType) -> list[MediaSummary]:
        ...

    async def details(self, media_type: MediaType, api_id: int) -> MediaDetail:
        ...

    async def similar(self, media_type: MediaType, api_id: int) -> list[MediaSummary]:
        ...


async def send_json(
    client: httpx.AsyncClient,
    provider: str,
    method: str,
    url: str,
    **kwargs: Any,
) -> Any:
    """Perform one HTTP exchange and classify failures for the retry policy."""

    try:
        response = await client.request(method, url, **kwargs)
    except httpx.TransportError as exc:
        # Connection resets, DNS failures and timeouts.
        raise ProviderTransientError(provider, f"{exc.__class__.__name__}: {exc}") from exc

    status = response.status_code
    logger.debug("%s %s %s -> %s", provider, method, response.request.url, status)
    if status >= 500:
        raise ProviderTransientError(
            provider, f"upstream returned {status}", status_code=status
        )
    if status == 404:
        raise MediaNotFoundError(provider, "resource not found", status_code=status)
    if status >= 400:
        raise ProviderPermanentError(
            provider, f"upstream returned {status}", status_code=status
        )
    try:
        return response.json()
    except ValueError as exc:
        raise ProviderPermanentError(provider, "malformed JSON response") from exc


class ProviderRegistry:
    """Maps each media type onto the adapter that serves it."""

    def __init__(self, providers: Iterable[MediaProvider]):
        self._by_media_type: dict[str, MediaProvider] = {}
        for provider in providers:
            for media_type in provider.media_types:
                self._by_media_type[media_type] = provider

    def for_media_type(self, media_type: str) -> MediaProvider:
        try:
            return self._by_media_type[media_type]
        except KeyError:
            raise ProviderError("registry", f"no provider serves {media_type}") from None

    def providers(self, media_type: str | None = None) -> list[MediaProvider]:
        """Return distinct adapters, optionally limited to one media type."""

        if media_type is not None:
            return [self.for_media_type(media_type)]
        unique: list[MediaProvider] = []
        for provider in self._by_media_type.values():
            if provider not in unique:
                unique.append(provider)
        return unique
