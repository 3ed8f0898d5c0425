"""Pydantic API schemas."""

from thumua_marketplace.schemas.chat import (
    ChatHistoryResponse,
    ChatMessage,
    ChatProduct,
    ChatRequest,
    ChatResponse,
)
from thumua_marketplace.schemas.common import CamelModel, HealthResponse, MessageResponse
from thumua_marketplace.schemas.exchange import (
    AvailableProductResponse,
    ExchangeResponse,
    ProductSummary,
    ProposeExchangeRequest,
    RespondExchangeRequest,
    UserSummary,
)
from thumua_marketplace.schemas.notification import (
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from thumua_marketplace.schemas.payment import (
    CreatePaymentRequest,
    IpnResponse,
    PaymentUrlResponse,
)

__all__ = [
    "AvailableProductResponse",
    "CamelModel",
    "ChatHistoryResponse",
    "ChatMessage",
    "ChatProduct",
    "ChatRequest",
    "ChatResponse",
    "CreatePaymentRequest",
    "ExchangeResponse",
    "HealthResponse",
    "IpnResponse",
    "MessageResponse",
    "NotificationListResponse",
    "NotificationResponse",
    "PaymentUrlResponse",
    "ProductSummary",
    "ProposeExchangeRequest",
    "RespondExchangeRequest",
    "UnreadCountResponse",
    "UserSummary",
]
