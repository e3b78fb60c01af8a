# tests/conftest.py
# ---------------------------------------------------------------------
# - Settings come from the environment, so set them before brickbook is imported
# - Every test gets a fresh in-memory SQLite database (StaticPool keeps the
#   single connection alive for the test's lifetime)
# - Redis is replaced by an in-process fake
# - API tests run the app through httpx with the DB session and the
#   current user overridden
# ---------------------------------------------------------------------

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, select, func
from sqlmodel.ext.asyncio.session import AsyncSession

from brickbook import app
from brickbook.db.main import get_Session
from brickbook.utils.auth import get_current_user, generate_password_hash
from brickbook.auth.models import User
from brickbook.customers.models import Customer
from brickbook.advance.models import AdvancePayment, AdvanceType
from brickbook.advance.services import post_ledger_entry
from brickbook.sales.schemas import SaleInput
from brickbook.sales.services import SaleServices


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the token blocklist."""

    def __init__(self):
        self.store = {}

    async def get(self, name):
        return self.store.get(name)

    async def setex(self, name, time, value):
        self.store[name] = value

    async def ping(self):
        return True

    async def close(self):
        pass


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr("brickbook.utils.auth.redis_client", fake)
    monkeypatch.setattr("brickbook.auth.services.redis_client", fake)
    return fake


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


async def _make_user(session, email):
    user = User(email=email, name="Dealer", company="Test Bricks", password_hash=generate_password_hash("secret123"))
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
async def user(session):
    return await _make_user(session, "owner@dealer.in")


@pytest.fixture
async def other_user(session):
    return await _make_user(session, "rival@dealer.in")


@pytest.fixture
def user_id(user):
    return str(user.user_id)


@pytest.fixture
def make_customer(session):
    """Create a customer; any starting advance goes through the ledger."""

    async def _make(owner, name="Ramesh Builders", advance="0", **fields):
        customer = Customer(user_id=owner.user_id, name=name, **fields)
        session.add(customer)
        await session.flush()
        amount = Decimal(advance)
        if amount > 0:
            post_ledger_entry(
                session, customer,
                amount=amount,
                type=AdvanceType.ADVANCE_ADDED,
                description="Opening advance",
                user_id=owner.user_id,
            )
        await session.commit()
        await session.refresh(customer)
        return customer

    return _make


@pytest.fixture
def make_sale(session):
    """Create a sale for ``total`` with ``paid`` received at the counter."""

    async def _make(owner, customer, total="2000", paid="0"):
        sale_input = SaleInput(
            customer_id=customer.id,
            items=[{"product_type": "Red bricks", "quantity": "1", "unit_price": total}],
            paid_amount=Decimal(paid),
        )
        result = await SaleServices().create_sale(sale_input, session, str(owner.user_id))
        await session.refresh(customer)
        return result["sale"]

    return _make


@pytest.fixture
def ledger_total(session):
    async def _total(customer):
        total = (await session.exec(
            select(func.sum(AdvancePayment.amount)).where(AdvancePayment.customer_id == customer.id)
        )).one()
        return total or Decimal("0")

    return _total


@pytest.fixture
async def client(session, user):
    async def _session_override():
        yield session

    async def _user_override():
        return {"user_id": str(user.user_id)}

    app.dependency_overrides[get_Session] = _session_override
    app.dependency_overrides[get_current_user] = _user_override

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def anonymous_client(session):
    async def _session_override():
        yield session

    app.dependency_overrides[get_Session] = _session_override

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
