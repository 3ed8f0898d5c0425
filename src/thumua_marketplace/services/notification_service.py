"""Notification Service: the sink other workflows write user-facing notices to.

Writes are best-effort: ``notify`` runs inside a SAVEPOINT so a failed insert
is rolled back on its own, logged, and never undoes the caller's primary change.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from thumua_marketplace.domain.exceptions import (
    ForbiddenError,
    NotificationNotFoundError,
)
from thumua_marketplace.infrastructure.database.orm_models import Notification
from thumua_marketplace.infrastructure.database.repositories import (
    NotificationRepository,
)
from thumua_marketplace.logging_config import get_logger

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from thumua_marketplace.domain.enums import NotificationType, RelatedType

logger = get_logger(__name__)


class NotificationService:
    """Creates and reads notifications for a user."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._repo = NotificationRepository(session)

    async def notify(
        self,
        user_id: uuid.UUID,
        type_: NotificationType,
        title: str,
        message: str,
        related_id: uuid.UUID | None = None,
        related_type: RelatedType | None = None,
    ) -> Notification | None:
        """Record a notice for ``user_id``. Returns None if the write failed."""
        try:
            async with self._session.begin_nested():
                notification = await self._repo.create(
                    Notification(
                        user_id=user_id,
                        type=type_.value,
                        title=title,
                        message=message,
                        related_id=related_id,
                        related_type=related_type.value if related_type else None,
                    )
                )
        except SQLAlchemyError as exc:
            logger.error(
                "notification.create_failed",
                user_id=str(user_id),
                type=type_.value,
                error=str(exc),
            )
            return None

        logger.info(
            "notification.created",
            user_id=str(user_id),
            type=type_.value,
            notification_id=str(notification.id),
        )
        return notification

    async def list_for_user(
        self, user_id: uuid.UUID, limit: int = 20, skip: int = 0
    ) -> tuple[list[Notification], int]:
        """Return a page of notifications and the user's total unread count."""
        notifications = await self._repo.list_for_user(user_id, limit=limit, skip=skip)
        unread = await self._repo.count_unread(user_id)
        return notifications, unread

    async def unread_count(self, user_id: uuid.UUID) -> int:
        return await self._repo.count_unread(user_id)

    async def mark_read(
        self, notification_id: uuid.UUID, user_id: uuid.UUID
    ) -> Notification:
        notification = await self._repo.get_by_id(notification_id)
        if notification is None:
            raise NotificationNotFoundError(str(notification_id))
        if notification.user_id != user_id:
            raise ForbiddenError("You cannot access this notification")
        return await self._repo.mark_read(notification)

    async def mark_all_read(self, user_id: uuid.UUID) -> int:
        changed = await self._repo.mark_all_read(user_id)
        logger.info("notification.all_marked_read", user_id=str(user_id), count=changed)
        return changed
