"""Tests for ExchangeService against an in-memory database.

Covers the proposal lifecycle end to end: validation order on propose,
responder/proposer permissions, single-shot transitions, exchange_count
bookkeeping and the notifications each step leaves behind.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from thumua_marketplace.domain.enums import ExchangeStatus, NotificationType
from thumua_marketplace.domain.exceptions import (
    ConflictError,
    DuplicateProposalError,
    ExchangeNotFoundError,
    ForbiddenError,
    InvalidRequestError,
    InvalidStateTransitionError,
    NotExchangeParticipantError,
    NotProductOwnerError,
    ProductNotFoundError,
    SelfExchangeError,
)
from thumua_marketplace.infrastructure.database.orm_models import (
    ExchangeProposal,
    Notification,
)
from thumua_marketplace.infrastructure.database.repositories import (
    ExchangeRepository,
    NotificationRepository,
    ProductRepository,
)
from thumua_marketplace.services.exchange_service import ExchangeService


@pytest_asyncio.fixture
async def parties(make_user, make_product):
    """Alice owns a bike, Bob owns a camera."""
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    bike = await make_product(alice, title="Xe đạp")
    camera = await make_product(bob, title="Máy ảnh", category="điện tử")
    return alice, bob, bike, camera


async def _notifications_for(session, user) -> list[Notification]:
    result = await session.execute(
        select(Notification)
        .where(Notification.user_id == user.id)
        .order_by(Notification.created_at)
    )
    return list(result.scalars().all())


class TestPropose:
    @pytest.mark.asyncio
    async def test_creates_pending_proposal(self, session, parties) -> None:
        alice, bob, bike, camera = parties
        svc = ExchangeService(session)

        proposal = await svc.propose(bike.id, camera.id, "  Đổi nhé?  ", alice)

        assert proposal.status == ExchangeStatus.PENDING
        assert proposal.from_user_id == alice.id
        assert proposal.to_user_id == bob.id
        assert proposal.message == "Đổi nhé?"
        assert proposal.responded_at is None
        assert proposal.from_product.title == "Xe đạp"
        assert proposal.to_user.name == "Bob"

    @pytest.mark.asyncio
    async def test_notifies_owner_of_requested_product(self, session, parties) -> None:
        alice, bob, bike, camera = parties

        proposal = await ExchangeService(session).propose(bike.id, camera.id, "Hi", alice)

        notices = await _notifications_for(session, bob)
        assert len(notices) == 1
        assert notices[0].type == NotificationType.EXCHANGE_REQUEST
        assert notices[0].related_id == proposal.id
        assert notices[0].related_type == "exchange"
        assert await _notifications_for(session, alice) == []

    @pytest.mark.asyncio
    async def test_blank_message_rejected(self, session, parties) -> None:
        alice, _, bike, camera = parties
        with pytest.raises(InvalidRequestError) as exc_info:
            await ExchangeService(session).propose(bike.id, camera.id, "   ", alice)
        assert exc_info.value.code == "MESSAGE_REQUIRED"

    @pytest.mark.asyncio
    async def test_unknown_product(self, session, parties) -> None:
        alice, _, bike, _ = parties
        with pytest.raises(ProductNotFoundError):
            await ExchangeService(session).propose(bike.id, uuid.uuid4(), "Hi", alice)

    @pytest.mark.asyncio
    async def test_must_own_offered_product(self, session, parties) -> None:
        alice, _, bike, camera = parties
        # Alice offers Bob's camera
        with pytest.raises(NotProductOwnerError) as exc_info:
            await ExchangeService(session).propose(camera.id, bike.id, "Hi", alice)
        assert isinstance(exc_info.value, ForbiddenError)

    @pytest.mark.asyncio
    async def test_self_exchange_rejected(self, session, parties, make_product) -> None:
        alice, _, bike, _ = parties
        helmet = await make_product(alice, title="Mũ bảo hiểm")
        with pytest.raises(SelfExchangeError) as exc_info:
            await ExchangeService(session).propose(bike.id, helmet.id, "Hi", alice)
        assert isinstance(exc_info.value, InvalidRequestError)

    @pytest.mark.asyncio
    async def test_duplicate_pending_rejected(self, session, parties) -> None:
        alice, _, bike, camera = parties
        svc = ExchangeService(session)
        await svc.propose(bike.id, camera.id, "Hi", alice)

        with pytest.raises(DuplicateProposalError) as exc_info:
            await svc.propose(bike.id, camera.id, "Hi again", alice)
        assert isinstance(exc_info.value, ConflictError)

    @pytest.mark.asyncio
    async def test_reverse_direction_is_not_a_duplicate(self, session, parties) -> None:
        alice, bob, bike, camera = parties
        svc = ExchangeService(session)
        await svc.propose(bike.id, camera.id, "Hi", alice)

        reverse = await svc.propose(camera.id, bike.id, "Or the other way", bob)
        assert reverse.status == ExchangeStatus.PENDING

    @pytest.mark.asyncio
    async def test_can_repropose_after_rejection(self, session, parties) -> None:
        alice, bob, bike, camera = parties
        svc = ExchangeService(session)
        first = await svc.propose(bike.id, camera.id, "Hi", alice)
        await svc.respond(first.id, ExchangeStatus.REJECTED, None, bob)

        second = await svc.propose(bike.id, camera.id, "Please?", alice)
        assert second.id != first.id
        assert second.status == ExchangeStatus.PENDING

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_block_proposal(
        self, session, parties
    ) -> None:
        alice, _, bike, camera = parties
        with patch.object(
            NotificationRepository,
            "create",
            side_effect=OperationalError("INSERT", {}, Exception("disk full")),
        ):
            proposal = await ExchangeService(session).propose(
                bike.id, camera.id, "Hi", alice
            )
        assert proposal.status == ExchangeStatus.PENDING


class TestRespond:
    @pytest.mark.asyncio
    async def test_accept_bumps_both_counters(self, session, parties) -> None:
        alice, bob, bike, camera = parties
        svc = ExchangeService(session)
        proposal = await svc.propose(bike.id, camera.id, "Hi", alice)

        updated = await svc.respond(proposal.id, ExchangeStatus.ACCEPTED, "Deal", bob)

        assert updated.status == ExchangeStatus.ACCEPTED
        assert updated.response_message == "Deal"
        assert updated.responded_at is not None
        await session.refresh(bike)
        await session.refresh(camera)
        assert bike.exchange_count == 1
        assert camera.exchange_count == 1

    @pytest.mark.asyncio
    async def test_accept_notifies_proposer(self, session, parties) -> None:
        alice, bob, bike, camera = parties
        svc = ExchangeService(session)
        proposal = await svc.propose(bike.id, camera.id, "Hi", alice)

        await svc.respond(proposal.id, "accepted", None, bob)

        notices = await _notifications_for(session, alice)
        assert [n.type for n in notices] == [NotificationType.EXCHANGE_ACCEPTED]
        assert "Bob" in notices[0].message

    @pytest.mark.asyncio
    async def test_reject_leaves_counters_alone(self, session, parties) -> None:
        alice, bob, bike, camera = parties
        svc = ExchangeService(session)
        proposal = await svc.propose(bike.id, camera.id, "Hi", alice)

        updated = await svc.respond(proposal.id, ExchangeStatus.REJECTED, None, bob)

        assert updated.status == ExchangeStatus.REJECTED
        await session.refresh(bike)
        await session.refresh(camera)
        assert bike.exchange_count == 0
        assert camera.exchange_count == 0
        notices = await _notifications_for(session, alice)
        assert [n.type for n in notices] == [NotificationType.EXCHANGE_REJECTED]

    @pytest.mark.asyncio
    async def test_only_responder_may_answer(self, session, parties, make_user) -> None:
        alice, _, bike, camera = parties
        mallory = await make_user("Mallory")
        svc = ExchangeService(session)
        proposal = await svc.propose(bike.id, camera.id, "Hi", alice)

        with pytest.raises(NotExchangeParticipantError):
            await svc.respond(proposal.id, ExchangeStatus.ACCEPTED, None, mallory)
        # The proposer cannot accept their own offer either
        with pytest.raises(ForbiddenError):
            await svc.respond(proposal.id, ExchangeStatus.ACCEPTED, None, alice)

        await session.refresh(proposal)
        assert proposal.status == ExchangeStatus.PENDING

    @pytest.mark.asyncio
    async def test_second_response_rejected(self, session, parties) -> None:
        alice, bob, bike, camera = parties
        svc = ExchangeService(session)
        proposal = await svc.propose(bike.id, camera.id, "Hi", alice)
        await svc.respond(proposal.id, ExchangeStatus.ACCEPTED, None, bob)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await svc.respond(proposal.id, ExchangeStatus.REJECTED, None, bob)
        assert exc_info.value.code == "ALREADY_PROCESSED"

        await session.refresh(proposal)
        assert proposal.status == ExchangeStatus.ACCEPTED
        await session.refresh(bike)
        assert bike.exchange_count == 1

    @pytest.mark.asyncio
    async def test_cancelled_is_not_a_response(self, session, parties) -> None:
        alice, bob, bike, camera = parties
        svc = ExchangeService(session)
        proposal = await svc.propose(bike.id, camera.id, "Hi", alice)

        with pytest.raises(InvalidRequestError) as exc_info:
            await svc.respond(proposal.id, ExchangeStatus.CANCELLED, None, bob)
        assert exc_info.value.code == "INVALID_DECISION"

    @pytest.mark.asyncio
    async def test_unknown_decision(self, session, parties) -> None:
        alice, bob, bike, camera = parties
        svc = ExchangeService(session)
        proposal = await svc.propose(bike.id, camera.id, "Hi", alice)

        with pytest.raises(InvalidRequestError):
            await svc.respond(proposal.id, "maybe", None, bob)

    @pytest.mark.asyncio
    async def test_unknown_exchange(self, session, parties) -> None:
        _, bob, _, _ = parties
        with pytest.raises(ExchangeNotFoundError):
            await ExchangeService(session).respond(
                uuid.uuid4(), ExchangeStatus.ACCEPTED, None, bob
            )

    @pytest.mark.asyncio
    async def test_counter_failure_keeps_acceptance(self, session, parties) -> None:
        alice, bob, bike, camera = parties
        svc = ExchangeService(session)
        proposal = await svc.propose(bike.id, camera.id, "Hi", alice)

        with patch.object(
            ProductRepository,
            "increment_exchange_count",
            side_effect=[OperationalError("UPDATE", {}, Exception("locked")), True],
        ):
            updated = await svc.respond(proposal.id, ExchangeStatus.ACCEPTED, None, bob)

        assert updated.status == ExchangeStatus.ACCEPTED
        notices = await _notifications_for(session, alice)
        assert [n.type for n in notices] == [NotificationType.EXCHANGE_ACCEPTED]


class TestCancel:
    @pytest.mark.asyncio
    async def test_proposer_cancels(self, session, parties) -> None:
        alice, bob, bike, camera = parties
        svc = ExchangeService(session)
        proposal = await svc.propose(bike.id, camera.id, "Hi", alice)

        cancelled = await svc.cancel(proposal.id, "Changed my mind", alice)

        assert cancelled.status == ExchangeStatus.CANCELLED
        assert cancelled.response_message == "Changed my mind"
        # Only the original request notice exists
        notices = await _notifications_for(session, bob)
        assert [n.type for n in notices] == [NotificationType.EXCHANGE_REQUEST]
        assert await _notifications_for(session, alice) == []

    @pytest.mark.asyncio
    async def test_responder_cannot_cancel(self, session, parties) -> None:
        alice, bob, bike, camera = parties
        svc = ExchangeService(session)
        proposal = await svc.propose(bike.id, camera.id, "Hi", alice)

        with pytest.raises(NotExchangeParticipantError):
            await svc.cancel(proposal.id, None, bob)

    @pytest.mark.asyncio
    async def test_cannot_cancel_after_acceptance(self, session, parties) -> None:
        alice, bob, bike, camera = parties
        svc = ExchangeService(session)
        proposal = await svc.propose(bike.id, camera.id, "Hi", alice)
        await svc.respond(proposal.id, ExchangeStatus.ACCEPTED, None, bob)

        with pytest.raises(InvalidStateTransitionError):
            await svc.cancel(proposal.id, None, alice)


class TestConcurrentTransition:
    @pytest.mark.asyncio
    async def test_conditional_update_applies_once(self, session, parties) -> None:
        alice, _, bike, camera = parties
        proposal = await ExchangeService(session).propose(bike.id, camera.id, "Hi", alice)
        repo = ExchangeRepository(session)

        first = await repo.transition_if_pending(proposal.id, ExchangeStatus.ACCEPTED, None)
        second = await repo.transition_if_pending(proposal.id, ExchangeStatus.REJECTED, None)

        assert first is True
        assert second is False
        stored = await repo.get_by_id(proposal.id)
        assert stored.status == ExchangeStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_stale_read_loses_race(self, session, parties) -> None:
        alice, _, bike, camera = parties
        svc = ExchangeService(session)
        proposal = await svc.propose(bike.id, camera.id, "Hi", alice)
        assert proposal.status == ExchangeStatus.PENDING

        # Another request rejects the proposal after we loaded it
        await ExchangeRepository(session).transition_if_pending(
            proposal.id, ExchangeStatus.REJECTED, None
        )

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await svc._transition(proposal, ExchangeStatus.ACCEPTED, None)
        assert exc_info.value.current_state == "rejected"


class TestQueries:
    @pytest.mark.asyncio
    async def test_list_mine_newest_first(self, session, parties, make_user, make_product) -> None:
        alice, bob, bike, camera = parties
        carol = await make_user("Carol")
        lamp = await make_product(carol, title="Đèn bàn")
        guitar = await make_product(carol, title="Đàn guitar")
        base = datetime(2024, 5, 1, tzinfo=UTC)
        repo = ExchangeRepository(session)

        def _proposal(from_p, to_p, minutes: int) -> ExchangeProposal:
            return ExchangeProposal(
                from_product_id=from_p.id,
                to_product_id=to_p.id,
                from_user_id=from_p.seller_id,
                to_user_id=to_p.seller_id,
                message="Hi",
                created_at=base + timedelta(minutes=minutes),
            )

        sent = await repo.create(_proposal(bike, camera, 1))
        received = await repo.create(_proposal(lamp, bike, 5))
        await repo.create(_proposal(guitar, camera, 10))  # not Alice's

        mine = await ExchangeService(session).list_mine(alice)

        assert [p.id for p in mine] == [received.id, sent.id]

    @pytest.mark.asyncio
    async def test_list_mine_empty(self, session, make_user) -> None:
        loner = await make_user("Loner")
        assert await ExchangeService(session).list_mine(loner) == []

    @pytest.mark.asyncio
    async def test_available_products(self, session, parties, make_product) -> None:
        alice, bob, bike, camera = parties
        await make_product(bob, title="Chờ duyệt", status="pending")
        await make_product(bob, title="Bị từ chối", status="rejected")

        available = await ExchangeService(session).available_products(alice)

        assert [p.id for p in available] == [camera.id]
        assert available[0].seller.name == "Bob"
