"""Document store holding each user together with its tracked items."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import UserRecord
from ..errors import InvalidRequestError
from ..models import TrackedItem, UserDocument

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Persistence contract used by the list services."""

    async def create_user(self, email: str, username: str) -> UserDocument:
        ...

    async def find_user_by_id(self, user_id: str) -> UserDocument | None:
        ...

    async def find_user_by_natural_key(
        self, user_id: str, api_id: int, media_type: str
    ) -> TrackedItem | None:
        ...

    async def save_user(self, user: UserDocument) -> None:
        ...

    async def delete_tracked_item(self, user_id: str, item_id: str) -> bool:
        ...

    async def delete_user(self, user_id: str) -> bool:
        ...

    async def list_user_ids(self) -> list[str]:
        ...


def _dump_items(items: list[TrackedItem]) -> list[dict[str, Any]]:
    return [item.model_dump(mode="json", by_alias=True) for item in items]


def _to_document(record: UserRecord) -> UserDocument:
    return UserDocument.model_validate(
        {
            "id": record.id,
            "email": record.email,
            "username": record.username,
            "trackedItems": list(record.tracked_items or []),
            "createdAt": record.created_at,
        }
    )


class SqlDocumentStore:
    """SQLAlchemy-backed store; each save replaces the whole user document."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create_user(self, email: str, username: str) -> UserDocument:
        normalized_email = (email or "").strip().lower()
        normalized_name = (username or "").strip()
        if not normalized_email or not normalized_name:
            raise InvalidRequestError("email and username are required")

        record = UserRecord(
            id=uuid.uuid4().hex,
            email=normalized_email,
            username=normalized_name,
            tracked_items=[],
        )
        async with self._session_factory() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise InvalidRequestError("Email already registered") from exc
        logger.info("Registered user %s", record.id)
        return _to_document(record)

    async def find_user_by_id(self, user_id: str) -> UserDocument | None:
        async with self._session_factory() as session:
            record = await session.get(UserRecord, user_id)
            if record is None:
                return None
            return _to_document(record)

    async def find_user_by_natural_key(
        self, user_id: str, api_id: int, media_type: str
    ) -> TrackedItem | None:
        user = await self.find_user_by_id(user_id)
        if user is None:
            return None
        return user.find_by_natural_key(api_id, media_type)

    async def save_user(self, user: UserDocument) -> None:
        async with self._session_factory() as session:
            record = await session.get(UserRecord, user.id)
            if record is None:
                record = UserRecord(id=user.id, email=user.email, username=user.username)
                session.add(record)
            record.email = user.email
            record.username = user.username
            record.tracked_items = _dump_items(user.tracked_items)
            await session.commit()

    async def delete_tracked_item(self, user_id: str, item_id: str) -> bool:
        """Pull the item if present; report whether anything was removed."""

        async with self._session_factory() as session:
            record = await session.get(UserRecord, user_id)
            if record is None:
                return False
            items = list(record.tracked_items or [])
            remaining = [entry for entry in items if entry.get("id") != item_id]
            if len(remaining) == len(items):
                return False
            record.tracked_items = remaining
            await session.commit()
            return True

    async def delete_user(self, user_id: str) -> bool:
        async with self._session_factory() as session:
            record = await session.get(UserRecord, user_id)
            if record is None:
                return False
            await session.delete(record)
            await session.commit()
        logger.info("Deleted user %s and its tracked items", user_id)
        return True

    async def list_user_ids(self) -> list[str]:
        async with self._session_factory() as session:
            result = await session.execute(select(UserRecord.id).order_by(UserRecord.created_at))
            return [row[0] for row in result.all()]
