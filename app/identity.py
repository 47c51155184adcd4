"""Resolve the calling user from an incoming request."""

from __future__ import annotations

from typing import Protocol

from fastapi import Request

from .errors import AuthenticationError

USER_ID_HEADER = "X-User-Id"


class IdentityProvider(Protocol):
    def authenticate(self, request: Request) -> str:
        ...


class HeaderIdentityProvider:
    """Trusts the user id forwarded by an authenticating gateway."""

    def __init__(self, header: str = USER_ID_HEADER):
        self._header = header

    def authenticate(self, request: Request) -> str:
        user_id = (request.headers.get(self._header) or "").strip()
        if not user_id:
            raise AuthenticationError(f"Missing {self._header} header")
        return user_id
