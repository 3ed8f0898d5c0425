"""Payment Service: VNPay checkout for existing orders.

Three entry points, one per gateway interaction:

    create_payment  -> signed redirect URL for the buyer's browser
    handle_return   -> where the browser lands afterwards (redirect target)
    handle_ipn      -> server-to-server notification ({RspCode, Message})

Only the IPN and return handlers change order state, and only after the
signature verifies and the paid amount matches the order total. Marking an
order paid is idempotent per transaction number; a second transaction for an
already paid order is refused.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from thumua_marketplace.config import get_settings
from thumua_marketplace.domain.enums import PaymentStatus
from thumua_marketplace.domain.exceptions import (
    ForbiddenError,
    InvalidRequestError,
    OrderAlreadyPaidError,
    OrderNotFoundError,
    PaymentAmountMismatchError,
)
from thumua_marketplace.infrastructure.database.repositories import OrderRepository
from thumua_marketplace.logging_config import get_logger
from thumua_marketplace.services.vnpay import VNPayClient

if TYPE_CHECKING:
    import uuid
    from collections.abc import Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from thumua_marketplace.infrastructure.database.orm_models import Order, User

logger = get_logger(__name__)

SUCCESS_CODE = "00"


def paid_amount(params: Mapping[str, str]) -> int | None:
    """VND amount reported by the gateway, or None when missing or malformed."""
    try:
        minor_units = int(params.get("vnp_Amount", ""))
    except ValueError:
        return None
    if minor_units % 100:
        return None
    return minor_units // 100


@dataclass(frozen=True)
class IpnResult:
    """Gateway acknowledgement plus the HTTP status to send it with."""

    rsp_code: str
    message: str
    http_status: int = 200


class PaymentService:
    """Bridges orders and the VNPay gateway."""

    def __init__(self, session: AsyncSession, vnpay: VNPayClient | None = None) -> None:
        self._session = session
        self._orders = OrderRepository(session)
        self._vnpay = vnpay or VNPayClient()
        self._client_url = get_settings().client_url.rstrip("/")

    async def create_payment(
        self,
        order_id: uuid.UUID | None,
        amount: int | None,
        description: str | None,
        acting_user: User,
        ip_addr: str = "127.0.0.1",
    ) -> str:
        """Return the gateway URL the buyer should be redirected to."""
        if order_id is None or not amount:
            raise InvalidRequestError("Missing order information", code="MISSING_ORDER_INFO")

        order = await self._orders.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(str(order_id))
        if order.customer_id != acting_user.id:
            raise ForbiddenError("You cannot pay for this order")
        if order.payment_status == PaymentStatus.PAID.value:
            raise OrderAlreadyPaidError(str(order_id))
        if amount != order.total_amount:
            raise PaymentAmountMismatchError(order.total_amount, amount)

        reference = order.order_number or str(order.id)
        url = self._vnpay.create_payment_url(
            order_id=reference,
            amount=order.total_amount,
            description=description or f"Thanh toan don hang {reference}",
            ip_addr=ip_addr,
        )
        logger.info(
            "payment.url_created",
            order_id=str(order.id),
            reference=reference,
            amount=order.total_amount,
        )
        return url

    async def handle_return(self, params: Mapping[str, str]) -> str:
        """Process the browser return and pick the storefront page to redirect to."""
        if not self._vnpay.verify_return_url(params):
            logger.warning("payment.return_invalid_signature", ref=params.get("vnp_TxnRef"))
            return self._fail_url(message="Invalid signature")

        reference = params.get("vnp_TxnRef", "")
        response_code = params.get("vnp_ResponseCode")
        order = await self._orders.find_by_reference(reference)
        if order is None:
            logger.warning("payment.return_order_missing", ref=reference)
            return self._fail_url(message="Order not found")
        if paid_amount(params) != order.total_amount:
            logger.warning("payment.return_amount_mismatch", order_id=str(order.id))
            return self._fail_url(orderId=str(order.id), message="Invalid amount")
        if order.payment_status == PaymentStatus.PAID.value:
            return self._success_url(order)

        if response_code == SUCCESS_CODE:
            await self._orders.mark_paid(order, params.get("vnp_TransactionNo"))
            logger.info("payment.return_paid", order_id=str(order.id))
            return self._success_url(order)

        logger.info(
            "payment.return_failed",
            order_id=str(order.id),
            response_code=response_code,
        )
        return self._fail_url(orderId=str(order.id), code=response_code or "")

    async def handle_ipn(self, params: Mapping[str, str]) -> IpnResult:
        """Apply an IPN callback and build the acknowledgement VNPay expects."""
        logger.info("payment.ipn_received", ref=params.get("vnp_TxnRef"))
        if not self._vnpay.verify_return_url(params):
            return IpnResult("97", "Invalid signature", http_status=400)

        reference = params.get("vnp_TxnRef", "")
        response_code = params.get("vnp_ResponseCode")
        transaction_no = params.get("vnp_TransactionNo")

        order = await self._orders.find_by_reference(reference)
        if order is None:
            return IpnResult("01", "Order not found", http_status=404)

        if paid_amount(params) != order.total_amount:
            logger.warning(
                "payment.ipn_amount_mismatch",
                order_id=str(order.id),
                amount=params.get("vnp_Amount"),
            )
            return IpnResult("04", "Invalid amount")

        if order.payment_status == PaymentStatus.PAID.value:
            if order.payment_transaction_no == transaction_no:
                return IpnResult(SUCCESS_CODE, "Order already processed")
            logger.warning(
                "payment.ipn_already_confirmed",
                order_id=str(order.id),
                transaction_no=transaction_no,
            )
            return IpnResult("02", "Order already confirmed")

        if response_code == SUCCESS_CODE:
            await self._orders.mark_paid(order, transaction_no)
            logger.info(
                "payment.ipn_paid",
                order_id=str(order.id),
                transaction_no=transaction_no,
            )
            return IpnResult(SUCCESS_CODE, "Success")

        logger.info("payment.ipn_failed", order_id=str(order.id), response_code=response_code)
        return IpnResult(response_code or "99", "Payment failed")

    def _success_url(self, order: Order) -> str:
        return f"{self._client_url}/payment/success?{urlencode({'orderId': str(order.id)})}"

    def _fail_url(self, **query: str) -> str:
        return f"{self._client_url}/payment/fail?{urlencode(query)}"
