"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select, update

from thumua_marketplace.domain.enums import (
    ExchangeStatus,
    PaymentMethod,
    PaymentStatus,
    ProductStatus,
)

from thumua_marketplace.infrastructure.database.orm_models import (
    ExchangeProposal,
    Notification,
    Order,
    Product,
    User,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class UserRepository:
    """Data access for user accounts."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: uuid.UUID) -> User | None:
        return await self._session.get(User, user_id)


class ProductRepository:
    """Read access to listings plus the exchange counter."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, product_id: uuid.UUID) -> Product | None:
        result = await self._session.execute(
            select(Product).where(Product.id == product_id)
        )
        return result.scalar_one_or_none()

    async def list_available_for(self, user_id: uuid.UUID) -> list[Product]:
        """Approved products whose seller is not ``user_id``, newest first."""
        result = await self._session.execute(
            select(Product)
            .where(
                Product.status == ProductStatus.APPROVED.value,
                Product.seller_id != user_id,
            )
            .order_by(Product.created_at.desc())
        )
        return list(result.scalars().all())

    async def search(self, query: str, limit: int = 5) -> list[Product]:
        """Case-insensitive match on title, description or category.

        Only approved products that are still in stock are returned.
        """
        pattern = f"%{query}%"
        result = await self._session.execute(
            select(Product)
            .where(
                Product.status == ProductStatus.APPROVED.value,
                Product.quantity > 0,
                or_(
                    Product.title.ilike(pattern),
                    Product.description.ilike(pattern),
                    Product.category.ilike(pattern),
                ),
            )
            .order_by(Product.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def increment_exchange_count(self, product_id: uuid.UUID) -> bool:
        """Atomically add one to ``exchange_count``. Returns False if no row matched."""
        result = await self._session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(
                exchange_count=Product.exchange_count + 1,
                updated_at=datetime.now(UTC),
            )
        )
        return result.rowcount == 1


class ExchangeRepository:
    """Data access for exchange proposals (the exchange ledger)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, proposal: ExchangeProposal) -> ExchangeProposal:
        """Insert a new proposal."""
        self._session.add(proposal)
        await self._session.flush()
        return proposal

    async def get_by_id(self, exchange_id: uuid.UUID) -> ExchangeProposal | None:
        """Fetch a proposal with products and users loaded.

        ``populate_existing`` makes sure a row already in the identity map is
        refreshed after a bulk UPDATE.
        """
        result = await self._session.execute(
            select(ExchangeProposal)
            .where(ExchangeProposal.id == exchange_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_pending(
        self,
        from_product_id: uuid.UUID,
        to_product_id: uuid.UUID,
    ) -> ExchangeProposal | None:
        """Return the pending proposal for this ordered product pair, if any."""
        result = await self._session.execute(
            select(ExchangeProposal)
            .where(
                ExchangeProposal.from_product_id == from_product_id,
                ExchangeProposal.to_product_id == to_product_id,
                ExchangeProposal.status == ExchangeStatus.PENDING.value,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: uuid.UUID) -> list[ExchangeProposal]:
        """All proposals sent or received by ``user_id``, newest first."""
        result = await self._session.execute(
            select(ExchangeProposal)
            .where(
                or_(
                    ExchangeProposal.from_user_id == user_id,
                    ExchangeProposal.to_user_id == user_id,
                )
            )
            .order_by(ExchangeProposal.created_at.desc())
        )
        return list(result.scalars().all())

    async def transition_if_pending(
        self,
        exchange_id: uuid.UUID,
        new_status: ExchangeStatus,
        response_message: str | None,
    ) -> bool:
        """Move a proposal out of ``pending`` in a single conditional UPDATE.

        Returns True when this call performed the transition, False when the
        row was no longer pending (another request got there first).
        """
        now = datetime.now(UTC)
        result = await self._session.execute(
            update(ExchangeProposal)
            .where(
                ExchangeProposal.id == exchange_id,
                ExchangeProposal.status == ExchangeStatus.PENDING.value,
            )
            .values(
                status=new_status.value,
                response_message=response_message,
                responded_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class NotificationRepository:
    """Data access for the notification sink."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, notification: Notification) -> Notification:
        self._session.add(notification)
        await self._session.flush()
        return notification

    async def get_by_id(self, notification_id: uuid.UUID) -> Notification | None:
        return await self._session.get(Notification, notification_id)

    async def list_for_user(
        self, user_id: uuid.UUID, limit: int = 20, skip: int = 0
    ) -> list[Notification]:
        result = await self._session.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_unread(self, user_id: uuid.UUID) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return int(result.scalar_one())

    async def mark_read(self, notification: Notification) -> Notification:
        notification.is_read = True
        notification.read_at = datetime.now(UTC)
        await self._session.flush()
        return notification

    async def mark_all_read(self, user_id: uuid.UUID) -> int:
        """Mark every unread notification of a user as read. Returns rows changed."""
        result = await self._session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class OrderRepository:
    """Data access for orders (payment fields only)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, order_id: uuid.UUID) -> Order | None:
        return await self._session.get(Order, order_id)

    async def get_by_order_number(self, order_number: str) -> Order | None:
        result = await self._session.execute(
            select(Order).where(Order.order_number == order_number)
        )
        return result.scalar_one_or_none()

    async def find_by_reference(self, reference: str) -> Order | None:
        """Look an order up by order number first, then by id.

        The gateway echoes whatever was sent as ``vnp_TxnRef``, which is the
        order number when one exists and the id otherwise.
        """
        order = await self.get_by_order_number(reference)
        if order is not None:
            return order
        try:
            order_id = uuid.UUID(reference)
        except ValueError:
            return None
        return await self.get_by_id(order_id)

    async def mark_paid(self, order: Order, transaction_no: str | None) -> Order:
        order.payment_status = PaymentStatus.PAID.value
        order.payment_method = PaymentMethod.VNPAY.value
        order.payment_transaction_no = transaction_no
        order.paid_at = datetime.now(UTC)
        await self._session.flush()
        return order
