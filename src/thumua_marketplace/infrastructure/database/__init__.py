"""Database infrastructure: engine, ORM models, and repositories."""

from thumua_marketplace.infrastructure.database.engine import (
    close_db,
    get_async_session,
    init_db,
)
from thumua_marketplace.infrastructure.database.orm_models import (
    Base,
    ExchangeProposal,
    Notification,
    Order,
    Product,
    User,
)
from thumua_marketplace.infrastructure.database.repositories import (
    ExchangeRepository,
    NotificationRepository,
    OrderRepository,
    ProductRepository,
    UserRepository,
)

__all__ = [
    "Base",
    "ExchangeProposal",
    "Notification",
    "Order",
    "Product",
    "User",
    "ExchangeRepository",
    "NotificationRepository",
    "OrderRepository",
    "ProductRepository",
    "UserRepository",
    "get_async_session",
    "init_db",
    "close_db",
]
