"""In-app notification routes.

Routes:
    GET    /api/notifications                Page of my notifications + unread count
    GET    /api/notifications/unread-count   Unread badge count
    PATCH  /api/notifications/read-all       Mark everything read
    PATCH  /api/notifications/{id}/read      Mark one read
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from thumua_marketplace.api.deps import get_current_user, get_db_session
from thumua_marketplace.infrastructure.database.orm_models import User
from thumua_marketplace.schemas.common import MessageResponse
from thumua_marketplace.schemas.notification import (
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from thumua_marketplace.services.notification_service import NotificationService

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse, summary="List my notifications")
async def list_notifications(
    limit: int = Query(default=20, ge=1, le=100),
    skip: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> NotificationListResponse:
    notifications, unread = await NotificationService(session).list_for_user(
        user.id, limit=limit, skip=skip
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=unread,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> UnreadCountResponse:
    return UnreadCountResponse(count=await NotificationService(session).unread_count(user.id))


# Declared before /{notification_id}/read so "read-all" is not parsed as an id
@router.patch("/read-all", response_model=MessageResponse)
async def mark_all_read(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    changed = await NotificationService(session).mark_all_read(user.id)
    return MessageResponse(message=f"Marked {changed} notifications as read")


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> NotificationResponse:
    notification = await NotificationService(session).mark_read(notification_id, user.id)
    return NotificationResponse.model_validate(notification)
