"""Pydantic schemas for the notification endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from thumua_marketplace.schemas.common import CamelModel


class NotificationResponse(CamelModel):
    id: uuid.UUID
    type: str
    title: str
    message: str
    related_id: uuid.UUID | None
    related_type: str | None
    is_read: bool
    read_at: datetime | None
    created_at: datetime


class NotificationListResponse(CamelModel):
    notifications: list[NotificationResponse]
    unread_count: int


class UnreadCountResponse(CamelModel):
    count: int
