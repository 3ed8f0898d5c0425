"""VNPay payment routes.

Routes:
    POST  /api/payments/create  Build a signed gateway URL for an order
    GET   /api/payments/return  Browser lands here after paying; redirects to the storefront
    POST  /api/payments/ipn     Server-to-server notification from VNPay
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from thumua_marketplace.api.deps import get_current_user, get_db_session, get_vnpay_client
from thumua_marketplace.infrastructure.database.orm_models import User
from thumua_marketplace.logging_config import get_logger
from thumua_marketplace.schemas.payment import (
    CreatePaymentRequest,
    IpnResponse,
    PaymentUrlResponse,
)
from thumua_marketplace.services.payment_service import PaymentService
from thumua_marketplace.services.vnpay import VNPayClient

router = APIRouter(prefix="/api/payments", tags=["Payments"])
logger = get_logger(__name__)


def client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None and request.client.host:
        return request.client.host
    return "127.0.0.1"


@router.post(
    "/create",
    response_model=PaymentUrlResponse,
    summary="Create a VNPay payment URL",
)
async def create_payment(
    body: CreatePaymentRequest,
    request: Request,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    vnpay: VNPayClient = Depends(get_vnpay_client),
) -> PaymentUrlResponse:
    svc = PaymentService(session, vnpay)
    url = await svc.create_payment(
        order_id=body.order_id,
        amount=body.amount,
        description=body.order_description,
        acting_user=user,
        ip_addr=client_ip(request),
    )
    return PaymentUrlResponse(payment_url=url)


@router.get("/return", summary="VNPay browser return")
async def payment_return(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    vnpay: VNPayClient = Depends(get_vnpay_client),
) -> RedirectResponse:
    target = await PaymentService(session, vnpay).handle_return(dict(request.query_params))
    return RedirectResponse(url=target, status_code=302)


@router.api_route("/ipn", methods=["GET", "POST"], summary="VNPay IPN callback")
async def payment_ipn(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    vnpay: VNPayClient = Depends(get_vnpay_client),
) -> JSONResponse:
    """Acknowledge a gateway notification with VNPay's ``RspCode`` protocol.

    VNPay sends the signed fields in the query string for both verbs.
    """
    params = dict(request.query_params)
    try:
        result = await PaymentService(session, vnpay).handle_ipn(params)
    except Exception as exc:
        await session.rollback()
        logger.exception("payment.ipn_error", error=str(exc))
        body = IpnResponse(rsp_code="99", message="Unknown error")
        return JSONResponse(status_code=500, content=body.model_dump(by_alias=True))

    body = IpnResponse(rsp_code=result.rsp_code, message=result.message)
    return JSONResponse(status_code=result.http_status, content=body.model_dump(by_alias=True))
