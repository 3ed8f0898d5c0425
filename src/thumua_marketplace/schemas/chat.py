"""Pydantic schemas for the AI consultant endpoints."""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import Field

from thumua_marketplace.schemas.common import CamelModel


class ChatRequest(CamelModel):
    message: str | None = Field(default=None, max_length=2000)
    clear_chat: bool = False


class ChatProduct(CamelModel):
    """Product card shown under an assistant reply."""

    id: uuid.UUID
    title: str
    price: int
    image: str | None
    category: str | None
    description: str | None


class ChatResponse(CamelModel):
    success: bool = True
    response: str
    products: list[ChatProduct] | None = None
    message: str | None = None


class ChatMessage(CamelModel):
    role: Literal["user", "assistant"]
    content: str


class ChatHistoryResponse(CamelModel):
    success: bool = True
    history: list[ChatMessage]
