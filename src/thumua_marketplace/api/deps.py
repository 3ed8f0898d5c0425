"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject database sessions,
the authenticated user, the Redis-backed chat history and the VNPay client.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from thumua_marketplace.domain.exceptions import (
    AuthenticationError,
    ForbiddenError,
    UserNotFoundError,
)
from thumua_marketplace.infrastructure.database.engine import get_async_session
from thumua_marketplace.infrastructure.database.repositories import UserRepository
from thumua_marketplace.infrastructure.redis_client import ChatHistoryStore, get_redis
from thumua_marketplace.logging_config import get_logger
from thumua_marketplace.security import user_id_from_token
from thumua_marketplace.services.vnpay import VNPayClient

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy.ext.asyncio import AsyncSession

    from thumua_marketplace.infrastructure.database.orm_models import User

logger = get_logger(__name__)

_bearer = HTTPBearer(auto_error=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request."""
    async for session in get_async_session():
        yield session


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    session: AsyncSession = Depends(get_db_session),
) -> User:
    """Resolve the acting user from ``Authorization: Bearer <token>``."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("No token, access denied")

    raw_id = user_id_from_token(credentials.credentials)
    try:
        user_id = uuid.UUID(raw_id)
    except ValueError as err:
        raise AuthenticationError("Invalid token: malformed user id") from err

    user = await UserRepository(session).get_by_id(user_id)
    if user is None:
        raise UserNotFoundError(raw_id)
    if not user.is_active:
        raise ForbiddenError("Your account has been disabled", code="ACCOUNT_DISABLED")

    structlog.contextvars.bind_contextvars(user_id=raw_id)
    return user


def get_chat_history_store() -> ChatHistoryStore | None:
    """Provide the chat history store, or None when Redis is down.

    The consultant still answers without history in that case.
    """
    try:
        return ChatHistoryStore(get_redis())
    except RuntimeError:
        logger.warning("chat.history_unavailable")
        return None


def get_vnpay_client() -> VNPayClient:
    return VNPayClient()
