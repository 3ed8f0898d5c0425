"""Domain layer: pure business logic with zero framework dependencies."""

from thumua_marketplace.domain.enums import (
    ExchangeStatus,
    NotificationType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ProductStatus,
    RelatedType,
    UserRole,
)
from thumua_marketplace.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    InvalidStateTransitionError,
    MarketplaceError,
    NotFoundError,
)
from thumua_marketplace.domain.state_machine import (
    ExchangeStateMachine,
    validate_transition,
)

__all__ = [
    "ExchangeStatus",
    "NotificationType",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "ProductStatus",
    "RelatedType",
    "UserRole",
    "ConflictError",
    "ForbiddenError",
    "InvalidRequestError",
    "InvalidStateTransitionError",
    "MarketplaceError",
    "NotFoundError",
    "ExchangeStateMachine",
    "validate_transition",
]
