"""Exception types raised by the list, discovery and provider layers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - import only for annotations
    from .models import TrackedItem


class InvalidRequestError(ValueError):
    """Input is missing required values or holds out-of-range values."""

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.details = details or []


class DuplicateItemError(ValueError):
    """The user already tracks a title with the same natural key."""

    def __init__(self, item: "TrackedItem"):
        super().__init__(
            f"{item.media_type} {item.api_id} is already in your list"
        )
        self.item = item


class InvalidMediaTypeError(ValueError):
    """A season operation was attempted on a title without seasons."""


class ItemNotFoundError(LookupError):
    """No tracked item with the given id exists in the user's collection."""

    def __init__(self, item_id: str):
        super().__init__(f"Tracked item {item_id} not found")
        self.item_id = item_id


class UserNotFoundError(LookupError):
    """No user document exists for the given id."""

    def __init__(self, user_id: str):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class AuthenticationError(Exception):
    """The caller could not be identified."""


class ProviderError(RuntimeError):
    """An upstream catalog could not serve the request."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        status_code: int | None = None,
    ):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class ProviderTransientError(ProviderError):
    """Connection failures, timeouts and upstream 5xx responses."""


class ProviderPermanentError(ProviderError):
    """4xx responses and payloads that cannot be interpreted."""


class MediaNotFoundError(ProviderPermanentError):
    """The upstream catalog has no title with the requested id."""
