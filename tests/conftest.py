"""Shared test fixtures for the marketplace test suite.

Provides:
    - Test settings (VNPay secret, JWT secret, no LLM key)
    - An in-memory SQLite database with SAVEPOINT support
    - Factory fixtures for users, products and orders
    - A fakeredis client and an httpx client bound to the ASGI app
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from thumua_marketplace.config import get_settings
from thumua_marketplace.infrastructure.database.orm_models import Base, Order, Product, User

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

TEST_VNPAY_SECRET = "TESTSECRETKEY0123456789ABCDEFGHIJ"
TEST_TMN_CODE = "TESTTMN1"
TEST_CLIENT_URL = "http://shop.test"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def test_settings(monkeypatch: pytest.MonkeyPatch):
    """Point every test at deterministic settings and rebuild the cache."""
    monkeypatch.setenv("APP_ENV", "development")
    monkeypatch.setenv("JWT_SECRET", "test-jwt-secret")
    monkeypatch.setenv("VNPAY_TMN_CODE", TEST_TMN_CODE)
    monkeypatch.setenv("VNPAY_HASH_SECRET", TEST_VNPAY_SECRET)
    monkeypatch.setenv("VNPAY_RETURN_URL", f"{TEST_CLIENT_URL}/payment/return")
    monkeypatch.setenv("CLIENT_URL", TEST_CLIENT_URL)
    monkeypatch.setenv("OPENAI_API_KEY", "")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(session: AsyncSession):
    async def _make(name: str = "Alice", is_active: bool = True, role: str = "user") -> User:
        user = User(
            name=name,
            email=f"{name.lower()}-{uuid.uuid4().hex[:8]}@example.com",
            role=role,
            is_active=is_active,
        )
        session.add(user)
        await session.flush()
        return user

    return _make


@pytest.fixture
def make_product(session: AsyncSession):
    async def _make(
        seller: User,
        title: str = "Xe đạp cũ",
        status: str = "approved",
        price: int = 500_000,
        category: str | None = "xe",
        description: str | None = None,
        quantity: int = 1,
    ) -> Product:
        product = Product(
            seller_id=seller.id,
            title=title,
            description=description,
            price=price,
            category=category,
            quantity=quantity,
            status=status,
        )
        session.add(product)
        await session.flush()
        return product

    return _make


@pytest.fixture
def make_order(session: AsyncSession):
    async def _make(customer: User, total_amount: int = 250_000, **fields) -> Order:
        order = Order(
            order_number=fields.pop("order_number", f"DH{uuid.uuid4().hex[:10].upper()}"),
            customer_id=customer.id,
            total_amount=total_amount,
            **fields,
        )
        session.add(order)
        await session.flush()
        return order

    return _make


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def fake_redis():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(session_factory, fake_redis) -> AsyncGenerator[AsyncClient, None]:
    """An httpx client talking to the app, backed by the test database.

    Rows created through the ``session`` fixture must be committed before
    the request so the app's own session can see them.
    """
    from thumua_marketplace.api.deps import get_chat_history_store, get_db_session
    from thumua_marketplace.infrastructure.redis_client import ChatHistoryStore
    from thumua_marketplace.main import create_app

    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db_session] = _override_session
    app.dependency_overrides[get_chat_history_store] = lambda: ChatHistoryStore(fake_redis)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
