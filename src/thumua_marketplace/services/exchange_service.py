"""Exchange Service: business logic for product-for-product swap proposals.

This is the application layer that coordinates between:
    - Domain state machine (transition guard)
    - Repositories (exchange ledger, product store)
    - Notification sink (side effect, best-effort)

Lifecycle:
    propose  -> pending                       (owner of from_product)
    respond  -> pending -> accepted|rejected  (owner of to_product)
    cancel   -> pending -> cancelled          (proposer)

Side effects after the status write never roll it back: notification and
exchange_count failures are logged and the transition stands. The two
counter increments are independent of each other as well.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError
from statemachine.exceptions import TransitionNotAllowed

from thumua_marketplace.domain.enums import (
    ExchangeStatus,
    NotificationType,
    RelatedType,
)
from thumua_marketplace.domain.exceptions import (
    DuplicateProposalError,
    ExchangeNotFoundError,
    InvalidRequestError,
    InvalidStateTransitionError,
    NotExchangeParticipantError,
    NotProductOwnerError,
    ProductNotFoundError,
    SelfExchangeError,
)
from thumua_marketplace.domain.state_machine import validate_transition
from thumua_marketplace.infrastructure.database.orm_models import ExchangeProposal
from thumua_marketplace.infrastructure.database.repositories import (
    ExchangeRepository,
    ProductRepository,
)
from thumua_marketplace.logging_config import get_logger
from thumua_marketplace.services.notification_service import NotificationService

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from thumua_marketplace.infrastructure.database.orm_models import Product, User

logger = get_logger(__name__)

RESPONDER_DECISIONS = (ExchangeStatus.ACCEPTED, ExchangeStatus.REJECTED)


class ExchangeService:
    """Manages the exchange proposal lifecycle."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._exchange_repo = ExchangeRepository(session)
        self._product_repo = ProductRepository(session)
        self._notifications = NotificationService(session)

    # ------------------------------------------------------------------
    # Proposal
    # ------------------------------------------------------------------

    async def propose(
        self,
        from_product_id: uuid.UUID,
        to_product_id: uuid.UUID,
        message: str,
        acting_user: User,
    ) -> ExchangeProposal:
        """Offer ``from_product`` (owned by the acting user) for ``to_product``."""
        message = (message or "").strip()
        if not message:
            raise InvalidRequestError("A message is required", code="MESSAGE_REQUIRED")

        from_product = await self._get_product_or_raise(from_product_id)
        to_product = await self._get_product_or_raise(to_product_id)

        if from_product.seller_id != acting_user.id:
            raise NotProductOwnerError(str(from_product_id))
        if from_product.seller_id == to_product.seller_id:
            raise SelfExchangeError()

        existing = await self._exchange_repo.find_pending(from_product.id, to_product.id)
        if existing is not None:
            raise DuplicateProposalError(str(from_product_id), str(to_product_id))

        proposal = await self._exchange_repo.create(
            ExchangeProposal(
                from_product_id=from_product.id,
                to_product_id=to_product.id,
                from_user_id=from_product.seller_id,
                to_user_id=to_product.seller_id,
                message=message,
                status=ExchangeStatus.PENDING.value,
            )
        )

        await self._notifications.notify(
            user_id=to_product.seller_id,
            type_=NotificationType.EXCHANGE_REQUEST,
            title="Someone wants to exchange with you",
            message=(
                f'{acting_user.name or "A user"} wants to exchange "{from_product.title}" '
                f'for your product "{to_product.title}".'
            ),
            related_id=proposal.id,
            related_type=RelatedType.EXCHANGE,
        )

        logger.info(
            "exchange.proposed",
            exchange_id=str(proposal.id),
            from_product=str(from_product.id),
            to_product=str(to_product.id),
            to_user=str(to_product.seller_id),
        )
        return await self._get_exchange_or_raise(proposal.id)

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    async def respond(
        self,
        exchange_id: uuid.UUID,
        decision: ExchangeStatus,
        response_message: str | None,
        acting_user: User,
    ) -> ExchangeProposal:
        """Accept or reject a pending proposal addressed to the acting user."""
        try:
            decision = ExchangeStatus(decision)
        except ValueError:
            decision = None
        if decision not in RESPONDER_DECISIONS:
            raise InvalidRequestError(
                f"Invalid response '{decision}'; expected accepted or rejected",
                code="INVALID_DECISION",
            )

        proposal = await self._get_exchange_or_raise(exchange_id)
        if proposal.to_user_id != acting_user.id:
            raise NotExchangeParticipantError("respond to")

        proposal = await self._transition(proposal, decision, response_message)
        responder = proposal.to_user.name or "The other party"

        if decision is ExchangeStatus.ACCEPTED:
            notice = (
                f'{responder} accepted exchanging "{proposal.from_product.title}" '
                f'for "{proposal.to_product.title}".'
            )
            await self._bump_exchange_count(proposal.from_product_id)
            await self._bump_exchange_count(proposal.to_product_id)
            await self._notifications.notify(
                user_id=proposal.from_user_id,
                type_=NotificationType.EXCHANGE_ACCEPTED,
                title="Your exchange offer was accepted",
                message=notice,
                related_id=proposal.id,
                related_type=RelatedType.EXCHANGE,
            )
        else:
            await self._notifications.notify(
                user_id=proposal.from_user_id,
                type_=NotificationType.EXCHANGE_REJECTED,
                title="Your exchange offer was declined",
                message=f"{responder} declined your exchange offer.",
                related_id=proposal.id,
                related_type=RelatedType.EXCHANGE,
            )

        logger.info(
            "exchange.responded",
            exchange_id=str(exchange_id),
            decision=decision.value,
            by=str(acting_user.id),
        )
        return await self._get_exchange_or_raise(exchange_id)

    async def cancel(
        self,
        exchange_id: uuid.UUID,
        response_message: str | None,
        acting_user: User,
    ) -> ExchangeProposal:
        """Withdraw a pending proposal. Only the proposer may cancel.

        No notification is sent to the responder.
        """
        proposal = await self._get_exchange_or_raise(exchange_id)
        if proposal.from_user_id != acting_user.id:
            raise NotExchangeParticipantError("cancel")

        proposal = await self._transition(
            proposal, ExchangeStatus.CANCELLED, response_message
        )
        logger.info("exchange.cancelled", exchange_id=str(exchange_id), by=str(acting_user.id))
        return proposal

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def list_mine(self, acting_user: User) -> list[ExchangeProposal]:
        """Proposals sent and received by the acting user, newest first.

        Unpaginated; fine at marketplace scale but it is a full scan per user.
        """
        return await self._exchange_repo.list_for_user(acting_user.id)

    async def available_products(self, acting_user: User) -> list[Product]:
        """Approved products from other sellers, i.e. things one could ask for."""
        return await self._product_repo.list_available_for(acting_user.id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_product_or_raise(self, product_id: uuid.UUID) -> Product:
        product = await self._product_repo.get_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    async def _get_exchange_or_raise(self, exchange_id: uuid.UUID) -> ExchangeProposal:
        proposal = await self._exchange_repo.get_by_id(exchange_id)
        if proposal is None:
            raise ExchangeNotFoundError(str(exchange_id))
        return proposal

    async def _transition(
        self,
        proposal: ExchangeProposal,
        target: ExchangeStatus,
        response_message: str | None,
    ) -> ExchangeProposal:
        """Validate with the state machine, then apply the conditional UPDATE.

        The UPDATE only matches a row that is still pending, so two concurrent
        responses cannot both succeed.
        """
        try:
            validate_transition(proposal.status, target)
        except TransitionNotAllowed as err:
            raise InvalidStateTransitionError(proposal.status, target.value) from err

        if response_message is not None:
            response_message = response_message.strip() or None

        applied = await self._exchange_repo.transition_if_pending(
            proposal.id, target, response_message
        )
        if not applied:
            current = await self._get_exchange_or_raise(proposal.id)
            logger.warning(
                "exchange.transition_lost_race",
                exchange_id=str(proposal.id),
                attempted=target.value,
                current=current.status,
            )
            raise InvalidStateTransitionError(current.status, target.value)

        return await self._get_exchange_or_raise(proposal.id)

    async def _bump_exchange_count(self, product_id: uuid.UUID) -> None:
        # Each increment gets its own savepoint so one failure leaves the
        # other increment and the status change in place.
        try:
            async with self._session.begin_nested():
                matched = await self._product_repo.increment_exchange_count(product_id)
        except SQLAlchemyError as exc:
            logger.error(
                "exchange.count_increment_failed",
                product_id=str(product_id),
                error=str(exc),
            )
            return
        if not matched:
            logger.warning("exchange.count_product_missing", product_id=str(product_id))
