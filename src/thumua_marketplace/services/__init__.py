"""Application services: use case orchestration."""

from thumua_marketplace.services.chat_service import ProductConsultant
from thumua_marketplace.services.exchange_service import ExchangeService
from thumua_marketplace.services.notification_service import NotificationService
from thumua_marketplace.services.payment_service import PaymentService
from thumua_marketplace.services.vnpay import VNPayClient

__all__ = [
    "ExchangeService",
    "NotificationService",
    "PaymentService",
    "ProductConsultant",
    "VNPayClient",
]
