"""Test configuration and fixtures."""

import os

# Settings are read at import time; point them at SQLite before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "development")

from datetime import datetime, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from bookeros.core.database import Base, get_db  # noqa: E402
from bookeros.core.dependencies import get_email_service, get_payment_gateway  # noqa: E402
from bookeros.core.permissions import Role  # noqa: E402
from bookeros.core.security import create_access_token, hash_password  # noqa: E402
from bookeros.models import *  # noqa: E402,F403 - Import all models
from bookeros.models import Business, Tour, User  # noqa: E402
from bookeros.services.email_service import EmailService  # noqa: E402
from bookeros.services.payment_gateway import (  # noqa: E402
    PaymentVerification,
    RefundResult,
    SandboxPaymentGateway,
)

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "s3cret-pass"


class FakePaymentGateway(SandboxPaymentGateway):
    """Sandbox gateway whose answers can be steered per test."""

    def __init__(self):
        self.paid = True
        self.refund_status = "succeeded"
        self.refunds: list[str] = []

    async def verify_payment(self, session_id: str) -> PaymentVerification:
        return PaymentVerification(
            status="paid" if self.paid else "unpaid",
            amount=Decimal("0.00"),
            currency="mxn",
            payment_intent_id=f"pi_test_{session_id}",
        )

    async def process_refund(self, payment_intent_id: str, amount: Decimal | None = None) -> RefundResult:
        self.refunds.append(payment_intent_id)
        return RefundResult(status=self.refund_status, amount_refunded=amount or Decimal("0.00"))


class RecordingEmailService(EmailService):
    """Keeps every outgoing message in memory."""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail_for: set[str] = set()

    async def send(self, to_email: str, subject: str, body: str) -> bool:
        if to_email in self.fail_for:
            raise RuntimeError(f"SMTP relay refused {to_email}")
        self.sent.append({"to": to_email, "subject": subject, "body": body})
        return True


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def payment_gateway():
    return FakePaymentGateway()


@pytest.fixture
def email_service():
    return RecordingEmailService()


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, payment_gateway, email_service):
    """The real application with database and collaborators overridden."""
    from bookeros.main import create_app

    app = create_app()

    # Override database dependency
    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    app.dependency_overrides[get_email_service] = lambda: email_service

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def business(test_session):
    business = Business(name="Vallarta Adventures", contact_email="ops@vallarta.example")
    test_session.add(business)
    await test_session.commit()
    await test_session.refresh(business)
    return business


@pytest_asyncio.fixture
async def other_business(test_session):
    business = Business(name="Sayulita Surf", contact_email="ops@sayulita.example")
    test_session.add(business)
    await test_session.commit()
    await test_session.refresh(business)
    return business


@pytest.fixture
def make_user(test_session):
    """Factory for users of any role."""

    async def _make_user(role: Role, business=None, username=None, is_active=True) -> User:
        username = username or f"{role.value}_{business.name.split()[0].lower() if business else 'platform'}"
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password(TEST_PASSWORD),
            full_name=username.replace("_", " ").title(),
            role=role.value,
            business_id=business.id if business else None,
            is_active=is_active,
        )
        test_session.add(user)
        await test_session.commit()
        await test_session.refresh(user)
        return user

    return _make_user


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user(Role.MASTER_ADMIN)


@pytest_asyncio.fixture
async def owner(make_user, business):
    return await make_user(Role.BUSINESS, business=business)


@pytest_asyncio.fixture
async def manager(make_user, business):
    return await make_user(Role.MANAGER, business=business)


@pytest_asyncio.fixture
async def seller(make_user):
    return await make_user(Role.SELLER)


@pytest_asyncio.fixture
async def customer(make_user):
    return await make_user(Role.CUSTOMER, username="maria_customer")


@pytest_asyncio.fixture
async def tour(test_session, business):
    tour = Tour(
        name="Marietas Islands Snorkel",
        location="Puerto Vallarta",
        price=Decimal("1500.00"),
        capacity=10,
        requirements="Sunscreen, towel",
        business_id=business.id,
    )
    test_session.add(tour)
    await test_session.commit()
    await test_session.refresh(tour)
    return tour


@pytest.fixture
def tour_date():
    """A date comfortably in the future, at 09:00."""
    day = (datetime.utcnow() + timedelta(days=30)).date()
    return datetime(day.year, day.month, day.day, 9, 0)


@pytest.fixture
def booking_payload(tour, tour_date):
    return {
        "tour_id": str(tour.id),
        "booking_date": tour_date.isoformat(),
        "adults": 2,
        "children": 1,
        "customer_name": "Maria Lopez",
        "customer_email": "maria@example.com",
        "customer_phone": "+52 322 000 0000",
    }
