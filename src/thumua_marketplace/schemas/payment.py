"""Pydantic schemas for the payment endpoints."""

from __future__ import annotations

import uuid

from pydantic import Field

from thumua_marketplace.schemas.common import CamelModel


class CreatePaymentRequest(CamelModel):
    """Body of POST /payments/create.

    Fields are optional at the schema level so a missing order id or amount
    gets the service's 400 rather than a validation 422.
    """

    order_id: uuid.UUID | None = None
    amount: int | None = Field(default=None, gt=0, description="Amount in VND")
    order_description: str | None = Field(default=None, max_length=255)


class PaymentUrlResponse(CamelModel):
    success: bool = True
    payment_url: str


class IpnResponse(CamelModel):
    """VNPay's IPN acknowledgement uses PascalCase keys."""

    rsp_code: str = Field(alias="RspCode")
    message: str = Field(alias="Message")
