"""
FarmaGenius Backend — Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    ├── engine:          in-memory aiosqlite engine with every table created
    ├── session_factory: async_sessionmaker bound to `engine`
    ├── db_session:      one AsyncSession for service-level tests
    ├── clock:           FakeClock driving the app's rate limiter
    ├── payment_gateway: FakePaymentGateway recording every call
    ├── app:             create_app() with the DB dependency and capabilities swapped
    ├── client:          httpx.AsyncClient talking to `app` over ASGITransport
    ├── create_user:     factory inserting a user with a known password
    └── auth_headers:    factory returning a Bearer header for a user
"""

import os

# Override settings BEFORE any farmagenius import: settings are read once at import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["BCRYPT_ROUNDS_PASSWORD_CHANGE"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["PUBLIC_APP_URL"] = "http://app.test"

from typing import Any, AsyncGenerator, Dict, List  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import farmagenius.models  # noqa: E402,F401
from farmagenius.config import settings  # noqa: E402
from farmagenius.database import Base, get_db_session  # noqa: E402
from farmagenius.main import create_app  # noqa: E402
from farmagenius.models import User  # noqa: E402
from farmagenius.services.auth import hash_password  # noqa: E402
from farmagenius.services.payment_base import PaymentGateway, PaymentRequest  # noqa: E402
from farmagenius.services.rate_limiter import FixedWindowRateLimiter  # noqa: E402

DEFAULT_PASSWORD = "Senha@123"


# ══════════════════════════════════════════════════════════════════════════
# Test Doubles
# ══════════════════════════════════════════════════════════════════════════

class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakePaymentGateway(PaymentGateway):
    """Records requests and returns canned provider payloads."""

    def __init__(self):
        self.created: List[PaymentRequest] = []
        self.queried: List[str] = []
        self.error: Exception = None

    async def create_payment(self, request: PaymentRequest) -> Dict[str, Any]:
        if self.error:
            raise self.error
        self.created.append(request)
        return {"id": "pay_123", "checkout_url": "https://pay.test/checkout/pay_123"}

    async def get_payment_status(self, payment_id: str) -> Dict[str, Any]:
        if self.error:
            raise self.error
        self.queried.append(payment_id)
        return {"id": payment_id, "status": "paid"}


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine():
    """
    Fresh in-memory database per test.

    StaticPool keeps the single connection alive, so every session in the
    test sees the same database.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Application Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def payment_gateway():
    return FakePaymentGateway()


@pytest.fixture
def app(session_factory, clock, payment_gateway):
    """
    The real application with test capabilities:
        - get_db_session bound to the per-test engine (same commit/rollback rules)
        - rate limiter on a FakeClock
        - payment gateway replaced by FakePaymentGateway
    """
    application = create_app()

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db_session] = override_db_session
    application.state.rate_limiter = FixedWindowRateLimiter(clock=clock)
    application.state.payment_gateway = payment_gateway
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX AsyncClient routed straight into the ASGI app.

    raise_app_exceptions=False so unexpected errors come back as the 500
    envelope instead of propagating into the test.
    """
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture
def create_user(session_factory):
    """
    Usage:
        user = await create_user(email="ana@farma.test")
    """

    async def _create(
        name: str = "Ana Souza",
        email: str = "ana@farma.test",
        password: str = DEFAULT_PASSWORD,
    ) -> User:
        async with session_factory() as session:
            user = User(
                name=name,
                email=email,
                password_hash=await hash_password(password, settings.bcrypt_rounds),
            )
            session.add(user)
            await session.commit()
            return user

    return _create


@pytest.fixture
def auth_headers(app):
    def _headers(user: User) -> Dict[str, str]:
        token = app.state.principal_resolver.issue_token(user.id, user.email, user.name)
        return {"Authorization": f"Bearer {token}"}

    return _headers
