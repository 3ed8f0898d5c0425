"""Domain exceptions for the marketplace.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware,
which maps each family to one status code:

    NotFoundError        -> 404
    ForbiddenError       -> 403
    InvalidRequestError  -> 400
    ConflictError        -> 409
    AuthenticationError  -> 401
"""


class MarketplaceError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "MARKETPLACE_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Families ---


class NotFoundError(MarketplaceError):
    """A referenced entity does not exist."""

    def __init__(self, message: str, code: str = "NOT_FOUND") -> None:
        super().__init__(message=message, code=code)


class ForbiddenError(MarketplaceError):
    """The acting user lacks ownership or role for the operation."""

    def __init__(self, message: str, code: str = "FORBIDDEN") -> None:
        super().__init__(message=message, code=code)


class InvalidRequestError(MarketplaceError):
    """Bad input or an operation not allowed in the entity's current state."""

    def __init__(self, message: str, code: str = "INVALID_REQUEST") -> None:
        super().__init__(message=message, code=code)


class ConflictError(MarketplaceError):
    """The operation would duplicate an existing live record."""

    def __init__(self, message: str, code: str = "CONFLICT") -> None:
        super().__init__(message=message, code=code)


class AuthenticationError(MarketplaceError):
    """Missing, malformed or expired bearer token."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message=message, code="AUTHENTICATION_FAILED")


# --- Not found ---


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str) -> None:
        super().__init__(
            message=f"Product not found: {product_id}",
            code="PRODUCT_NOT_FOUND",
        )
        self.product_id = product_id


class ExchangeNotFoundError(NotFoundError):
    def __init__(self, exchange_id: str) -> None:
        super().__init__(
            message=f"Exchange proposal not found: {exchange_id}",
            code="EXCHANGE_NOT_FOUND",
        )
        self.exchange_id = exchange_id


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str) -> None:
        super().__init__(
            message=f"Order not found: {order_id}",
            code="ORDER_NOT_FOUND",
        )
        self.order_id = order_id


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__(
            message=f"User not found: {user_id}",
            code="USER_NOT_FOUND",
        )
        self.user_id = user_id


class NotificationNotFoundError(NotFoundError):
    def __init__(self, notification_id: str) -> None:
        super().__init__(
            message=f"Notification not found: {notification_id}",
            code="NOTIFICATION_NOT_FOUND",
        )


# --- Exchange workflow ---


class NotProductOwnerError(ForbiddenError):
    """Raised when the proposer offers a product they do not own."""

    def __init__(self, product_id: str) -> None:
        super().__init__(
            message="You do not own this product",
            code="NOT_PRODUCT_OWNER",
        )
        self.product_id = product_id


class NotExchangeParticipantError(ForbiddenError):
    """Raised when someone other than the allowed party acts on a proposal."""

    def __init__(self, action: str) -> None:
        super().__init__(
            message=f"You are not allowed to {action} this exchange proposal",
            code="NOT_EXCHANGE_PARTICIPANT",
        )
        self.action = action


class SelfExchangeError(InvalidRequestError):
    """Raised when both products belong to the same seller."""

    def __init__(self) -> None:
        super().__init__(
            message="Cannot exchange with yourself",
            code="SELF_EXCHANGE",
        )


class DuplicateProposalError(ConflictError):
    """Raised when a pending proposal already exists for the same product pair."""

    def __init__(self, from_product_id: str, to_product_id: str) -> None:
        super().__init__(
            message="Duplicate proposal: a pending exchange already exists for these products",
            code="DUPLICATE_PROPOSAL",
        )
        self.from_product_id = from_product_id
        self.to_product_id = to_product_id


class InvalidStateTransitionError(InvalidRequestError):
    """Raised when a proposal is no longer pending.

    Example: accepted -> rejected (terminal states never change).
    """

    def __init__(self, current_state: str, attempted_state: str) -> None:
        super().__init__(
            message=(
                f"Exchange proposal already processed "
                f"(status {current_state}, attempted {attempted_state})"
            ),
            code="ALREADY_PROCESSED",
        )
        self.current_state = current_state
        self.attempted_state = attempted_state


# --- Payments ---


class OrderAlreadyPaidError(InvalidRequestError):
    def __init__(self, order_id: str) -> None:
        super().__init__(
            message=f"Order already paid: {order_id}",
            code="ORDER_ALREADY_PAID",
        )
        self.order_id = order_id


class PaymentAmountMismatchError(InvalidRequestError):
    """Raised when the requested amount differs from the order total."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(
            message=f"Payment amount {received} does not match order total {expected}",
            code="INVALID_AMOUNT",
        )
        self.expected = expected
        self.received = received
