"""Exchange proposal REST API routes.

Routes:
    POST   /api/exchanges/propose             Propose a product-for-product swap
    GET    /api/exchanges/my-offers           Proposals sent and received
    PUT    /api/exchanges/{id}/respond        Accept, reject or cancel
    GET    /api/exchanges/available-products  Products one could ask for
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from thumua_marketplace.api.deps import get_current_user, get_db_session
from thumua_marketplace.domain.enums import ExchangeStatus
from thumua_marketplace.infrastructure.database.orm_models import User
from thumua_marketplace.logging_config import get_logger
from thumua_marketplace.schemas.exchange import (
    AvailableProductResponse,
    ExchangeResponse,
    ProposeExchangeRequest,
    RespondExchangeRequest,
)
from thumua_marketplace.services.exchange_service import ExchangeService

router = APIRouter(prefix="/api/exchanges", tags=["Exchanges"])
logger = get_logger(__name__)


@router.post(
    "/propose",
    response_model=ExchangeResponse,
    status_code=201,
    summary="Propose an exchange",
)
async def propose_exchange(
    request: ProposeExchangeRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ExchangeResponse:
    """Offer one of your products for someone else's. Starts in PENDING."""
    svc = ExchangeService(session)
    proposal = await svc.propose(
        from_product_id=request.from_product_id,
        to_product_id=request.to_product_id,
        message=request.message,
        acting_user=user,
    )
    return ExchangeResponse.model_validate(proposal)


@router.get(
    "/my-offers",
    response_model=list[ExchangeResponse],
    summary="List my exchange proposals",
)
async def my_offers(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> list[ExchangeResponse]:
    """Proposals where the caller is proposer or responder, newest first."""
    proposals = await ExchangeService(session).list_mine(user)
    return [ExchangeResponse.model_validate(p) for p in proposals]


@router.put(
    "/{exchange_id}/respond",
    response_model=ExchangeResponse,
    summary="Respond to an exchange proposal",
)
async def respond_exchange(
    exchange_id: uuid.UUID,
    request: RespondExchangeRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ExchangeResponse:
    """``accepted``/``rejected`` come from the responder, ``cancelled`` from the proposer."""
    svc = ExchangeService(session)
    decision = ExchangeStatus(request.response)
    if decision is ExchangeStatus.CANCELLED:
        proposal = await svc.cancel(
            exchange_id=exchange_id,
            response_message=request.message,
            acting_user=user,
        )
    else:
        proposal = await svc.respond(
            exchange_id=exchange_id,
            decision=decision,
            response_message=request.message,
            acting_user=user,
        )
    return ExchangeResponse.model_validate(proposal)


@router.get(
    "/available-products",
    response_model=list[AvailableProductResponse],
    summary="Products available to ask for",
)
async def available_products(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> list[AvailableProductResponse]:
    products = await ExchangeService(session).available_products(user)
    return [AvailableProductResponse.model_validate(p) for p in products]
