"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database, the app's get_db and
payment gateway dependencies overridden, and an httpx client talking to the
ASGI app directly.
"""
import itertools
import os

# Must be set before the app (and shared.security) is imported
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("INTERNAL_API_KEY", "test-internal-key")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from main import app
from services.auth_service.models import User
from services.payment_service.gateway import get_payment_gateway
from services.payment_service.schemas import StkPushResponse
from services.product_service.models import Product
from shared.config.database import Base, get_db
from shared.errors import GatewayFailure
from shared.security import create_access_token

INTERNAL_HEADERS = {"X-Internal-API-Key": os.environ["INTERNAL_API_KEY"]}


class FakeGateway:
    """Stands in for MpesaGateway; records calls and can be told to fail."""

    def __init__(self):
        self.calls = []
        self.fail = False
        self.error = None
        self.checkout_request_id = None
        self._ids = itertools.count(1)

    async def initiate_payment(self, **kwargs):
        self.calls.append(kwargs)
        if self.fail:
            raise GatewayFailure("M-Pesa unreachable")
        if self.error is not None:
            raise self.error
        n = next(self._ids)
        return StkPushResponse(
            MerchantRequestID=f"29115-34620561-{n}",
            CheckoutRequestID=self.checkout_request_id or f"ws_CO_19122019102036392{n}",
            ResponseCode="0",
            ResponseDescription="Success. Request accepted for processing",
            CustomerMessage="Success. Request accepted for processing",
        )


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest_asyncio.fixture
async def client(session_factory, gateway):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
    app.dependency_overrides.clear()


async def _create_user(session_factory, name: str, phone_number: str | None = None) -> User:
    async with session_factory() as session:
        user = User(
            name=name,
            email=f"{name.lower()}@example.com",
            hashed_password="not-a-real-hash",
            phone_number=phone_number,
        )
        session.add(user)
        await session.commit()
        return user


@pytest_asyncio.fixture
async def buyer(session_factory):
    return await _create_user(session_factory, "Wanjiku")


@pytest_asyncio.fixture
async def seller(session_factory):
    return await _create_user(session_factory, "Otieno")


@pytest_asyncio.fixture
async def stranger(session_factory):
    return await _create_user(session_factory, "Mallory")


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def make_product(session_factory):
    async def _make(name="Sufuria", price="100.00", stock=5, seller=None, image=None):
        async with session_factory() as session:
            product = Product(
                name=name,
                price=Decimal(price),
                stock=stock,
                seller_id=seller.id if seller else None,
                image=image,
                review_count=0,
            )
            session.add(product)
            await session.commit()
            return product

    return _make


@pytest.fixture
def read_product(session_factory):
    async def _read(product_id: int) -> Product:
        async with session_factory() as session:
            return await session.get(Product, product_id)

    return _read


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def internal_headers():
    return dict(INTERNAL_HEADERS)


@pytest_asyncio.fixture
async def buyer_with_phone(session_factory):
    return await _create_user(session_factory, "Achieng", phone_number="0722000111")


@pytest_asyncio.fixture
async def pooled_session_factory(tmp_path):
    """File-backed database with one connection per session, for racing requests."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'marketplace.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def pooled_client(pooled_session_factory, gateway):
    async def override_get_db():
        async with pooled_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
    app.dependency_overrides.clear()
