"""SQLAlchemy 2.0 ORM models for the marketplace.

Tables:
    1. users              : Accounts (buyers, sellers, admins).
    2. products           : Listings owned by a seller; carries exchange_count.
    3. exchange_proposals : Product-for-product offers and their outcome.
    4. notifications      : User-facing notices (the notification sink).
    5. orders             : Purchases; only the payment fields are mutated here.

Design decisions:
    - UUIDs as primary keys (portable Uuid type, native on PostgreSQL).
    - VND amounts are whole numbers, stored as BigInteger.
    - CHECK constraints on status columns mirror the domain enums.
    - exchange_proposals rows are never deleted; status changes once.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from thumua_marketplace.domain.enums import (
    ExchangeStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ProductStatus,
    UserRole,
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# 1. users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(10), nullable=False, default=UserRole.USER.value)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin')", name="ck_user_valid_role"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email}>"


# ---------------------------------------------------------------------------
# 2. products
# ---------------------------------------------------------------------------
class Product(Base):
    """A second-hand item listed by a seller."""

    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    seller_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="Owning user",
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    category: Mapped[str | None] = mapped_column(String(80), nullable=True)
    image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ProductStatus.PENDING.value,
        comment="Moderation state; only approved products are browsable",
    )
    exchange_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of accepted exchanges this product took part in",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    seller: Mapped[User] = relationship("User", lazy="selectin")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'pending_deletion')",
            name="ck_product_valid_status",
        ),
        CheckConstraint("exchange_count >= 0", name="ck_product_exchange_count"),
        Index("idx_product_seller", "seller_id"),
        Index("idx_product_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} title={self.title!r} status={self.status}>"


# ---------------------------------------------------------------------------
# 3. exchange_proposals
# ---------------------------------------------------------------------------
class ExchangeProposal(Base):
    """An offer to swap ``from_product`` (proposer's) for ``to_product``.

    ``from_user_id`` and ``to_user_id`` are copied from the products' sellers
    when the proposal is created and never re-derived.
    """

    __tablename__ = "exchange_proposals"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    from_product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id"), nullable=False
    )
    to_product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id"), nullable=False
    )
    from_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, comment="Proposer"
    )
    to_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, comment="Responder"
    )

    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ExchangeStatus.PENDING.value,
        comment="Guarded by ExchangeStateMachine",
    )
    response_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    from_product: Mapped[Product] = relationship(
        "Product", foreign_keys=[from_product_id], lazy="selectin"
    )
    to_product: Mapped[Product] = relationship(
        "Product", foreign_keys=[to_product_id], lazy="selectin"
    )
    from_user: Mapped[User] = relationship(
        "User", foreign_keys=[from_user_id], lazy="selectin"
    )
    to_user: Mapped[User] = relationship(
        "User", foreign_keys=[to_user_id], lazy="selectin"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'cancelled')",
            name="ck_exchange_valid_status",
        ),
        CheckConstraint(
            "from_product_id <> to_product_id",
            name="ck_exchange_distinct_products",
        ),
        Index("idx_exchange_from_user", "from_user_id", "created_at"),
        Index("idx_exchange_to_user", "to_user_id", "created_at"),
        Index("idx_exchange_pair_status", "from_product_id", "to_product_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<ExchangeProposal id={self.id} status={self.status} "
            f"{self.from_product_id}->{self.to_product_id}>"
        )


# ---------------------------------------------------------------------------
# 4. notifications
# ---------------------------------------------------------------------------
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    related_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    related_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "related_type IS NULL OR related_type IN ('product', 'exchange', 'order')",
            name="ck_notification_related_type",
        ),
        Index("idx_notification_user_read", "user_id", "is_read", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} type={self.type} read={self.is_read}>"


# ---------------------------------------------------------------------------
# 5. orders
# ---------------------------------------------------------------------------
class Order(Base):
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    total_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    payment_method: Mapped[str] = mapped_column(
        String(10), nullable=False, default=PaymentMethod.COD.value
    )
    payment_status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=PaymentStatus.PENDING.value
    )
    payment_transaction_no: Mapped[str | None] = mapped_column(String(40), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrderStatus.PENDING.value
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "payment_method IN ('cod', 'banking', 'vnpay')",
            name="ck_order_payment_method",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'failed')",
            name="ck_order_payment_status",
        ),
        Index("idx_order_customer", "customer_id"),
    )

    def __repr__(self) -> str:
        return f"<Order {self.order_number} payment={self.payment_status}>"
