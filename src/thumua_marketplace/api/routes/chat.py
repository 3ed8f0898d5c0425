"""AI product consultant routes.

Routes:
    POST  /api/ai/chat         Signed-in chat, remembers recent turns
    POST  /api/ai/chat/guest   Stateless chat for visitors
    GET   /api/ai/history      The signed-in user's recent turns
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from thumua_marketplace.api.deps import (
    get_chat_history_store,
    get_current_user,
    get_db_session,
)
from thumua_marketplace.infrastructure.database.orm_models import User
from thumua_marketplace.infrastructure.redis_client import ChatHistoryStore
from thumua_marketplace.schemas.chat import (
    ChatHistoryResponse,
    ChatMessage,
    ChatProduct,
    ChatRequest,
    ChatResponse,
)
from thumua_marketplace.services.chat_service import ChatReply, ProductConsultant

router = APIRouter(prefix="/api/ai", tags=["AI Consultant"])


def _to_response(reply: ChatReply) -> ChatResponse:
    return ChatResponse(
        response=reply.response,
        products=[ChatProduct.model_validate(p) for p in reply.products] or None,
    )


@router.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
async def chat(
    body: ChatRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    history: ChatHistoryStore | None = Depends(get_chat_history_store),
) -> ChatResponse:
    consultant = ProductConsultant(session, history=history)
    if body.clear_chat:
        greeting = await consultant.clear(str(user.id))
        return ChatResponse(response=greeting, message="Chat history cleared")
    reply = await consultant.chat(str(user.id), body.message or "")
    return _to_response(reply)


@router.post("/chat/guest", response_model=ChatResponse, response_model_exclude_none=True)
async def guest_chat(
    body: ChatRequest,
    session: AsyncSession = Depends(get_db_session),
) -> ChatResponse:
    reply = await ProductConsultant(session).chat(None, body.message or "")
    return _to_response(reply)


@router.get("/history", response_model=ChatHistoryResponse)
async def chat_history(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    history: ChatHistoryStore | None = Depends(get_chat_history_store),
) -> ChatHistoryResponse:
    turns = await ProductConsultant(session, history=history).get_history(str(user.id))
    return ChatHistoryResponse(
        history=[
            ChatMessage(role=t["role"], content=t["content"])
            for t in turns
            if t.get("role") in ("user", "assistant")
        ]
    )
