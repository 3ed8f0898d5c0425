"""Domain enumerations for the marketplace.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class ExchangeStatus(enum.StrEnum):
    """Lifecycle states of an exchange proposal.

    PENDING is the only non-terminal state. Transitions are guarded by
    ExchangeStateMachine (see domain/state_machine.py).
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not ExchangeStatus.PENDING


class ProductStatus(enum.StrEnum):
    """Moderation states of a product listing."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PENDING_DELETION = "pending_deletion"


class UserRole(enum.StrEnum):
    USER = "user"
    ADMIN = "admin"


class NotificationType(enum.StrEnum):
    """Kinds of user-facing notices written to the notification sink."""

    PRODUCT_APPROVED = "product_approved"
    PRODUCT_REJECTED = "product_rejected"
    EXCHANGE_REQUEST = "exchange_request"
    EXCHANGE_ACCEPTED = "exchange_accepted"
    EXCHANGE_REJECTED = "exchange_rejected"
    ORDER_CONFIRMED = "order_confirmed"
    PRODUCT_SOLD = "product_sold"


class RelatedType(enum.StrEnum):
    """Entity kind a notification points at (paired with related_id)."""

    PRODUCT = "product"
    EXCHANGE = "exchange"
    ORDER = "order"


class PaymentMethod(enum.StrEnum):
    COD = "cod"
    BANKING = "banking"
    VNPAY = "vnpay"


class PaymentStatus(enum.StrEnum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class OrderStatus(enum.StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPING = "shipping"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
