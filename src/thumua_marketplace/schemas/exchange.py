"""Pydantic schemas for the Exchange API.

These schemas define the request/response shapes for the REST API. They are
separate from the ORM models to keep the API and database layers apart.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import Field

from thumua_marketplace.schemas.common import CamelModel

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class ProposeExchangeRequest(CamelModel):
    """Body of POST /exchanges/propose."""

    from_product_id: uuid.UUID = Field(
        ...,
        description="Product offered by the proposer (must be theirs)",
    )
    to_product_id: uuid.UUID = Field(
        ...,
        description="Product the proposer wants in return",
    )
    message: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Note to the other seller",
        examples=["Đổi xe đạp lấy máy ảnh của bạn nhé?"],
    )


class RespondExchangeRequest(CamelModel):
    """Body of PUT /exchanges/{id}/respond.

    ``accepted`` and ``rejected`` are the responder's answers; ``cancelled``
    is the proposer withdrawing the offer.
    """

    response: Literal["accepted", "rejected", "cancelled"]
    message: str | None = Field(default=None, max_length=2000)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class UserSummary(CamelModel):
    id: uuid.UUID
    name: str
    email: str


class ProductSummary(CamelModel):
    id: uuid.UUID
    title: str
    image: str | None
    price: int
    category: str | None
    seller_id: uuid.UUID
    status: str
    exchange_count: int


class AvailableProductResponse(ProductSummary):
    """A product someone else owns that can be asked for in an exchange."""

    description: str | None
    quantity: int
    seller: UserSummary
    created_at: datetime


class ExchangeResponse(CamelModel):
    """An exchange proposal with both products and both users resolved."""

    id: uuid.UUID
    from_product: ProductSummary
    to_product: ProductSummary
    from_user: UserSummary
    to_user: UserSummary
    message: str
    status: str
    response_message: str | None
    responded_at: datetime | None
    created_at: datetime
    updated_at: datetime
