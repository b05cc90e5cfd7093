"""Test configuration and fixtures."""

import os
from collections.abc import AsyncGenerator
from datetime import date, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from school_ledger.core.database import Base, get_db
from school_ledger.core.money import Money
from school_ledger.models.student import Batch, BatchTiming, Level, Student
from school_ledger.schemas.student import StudentCreate
from school_ledger.services import ledger as ledger_service
from main import app

# SQLite by default; point TEST_DATABASE_URL at a PostgreSQL test database to
# run the suite against the production dialect.
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_school_ledger.db")

# Create test engine with NullPool to avoid connection issues
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=NullPool,
)
test_session_maker = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    """Override database dependency for tests."""
    async with test_session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def setup_database() -> AsyncGenerator[None, None]:
    """Create test database tables before each test that needs it."""
    app.dependency_overrides[get_db] = override_get_db

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    app.dependency_overrides.pop(get_db, None)


@pytest_asyncio.fixture
async def db(setup_database: None) -> AsyncGenerator[AsyncSession, None]:
    """Get database session for tests."""
    async with test_session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(setup_database: None) -> AsyncGenerator[AsyncClient, None]:
    """Get async HTTP client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def money() -> Money:
    """Converter with the default 104.5 INR per EUR rate."""
    return Money(Decimal("104.5"))


@pytest.fixture
async def batch(db: AsyncSession) -> Batch:
    """Create a morning A1 batch."""
    batch = Batch(
        batch_code="A1-MOR-01",
        level=Level.A1,
        timing=BatchTiming.MORNING,
        start_date=date.today() - timedelta(days=20),
    )
    db.add(batch)
    await db.commit()
    return batch


@pytest.fixture
def make_student(db: AsyncSession, money: Money):
    """Factory enrolling a student through the ledger service."""

    async def _make_student(
        name: str = "Anna Schmidt",
        *,
        original_price: str = "1000.00",
        discount: str = "0",
        currency: str = "EUR",
        initial_payment: str = "0",
        enrolled_days_ago: int = 5,
        level: Level = Level.A1,
        batch_id=None,
        referral_source: str | None = None,
    ) -> Student:
        result = await ledger_service.enroll_student(
            db,
            StudentCreate(
                name=name,
                whatsapp="+491701234567",
                current_level=level,
                batch_id=batch_id,
                referral_source=referral_source,
                enrollment_date=date.today() - timedelta(days=enrolled_days_ago),
                currency=currency,
                original_price=Decimal(original_price),
                discount_applied=Decimal(discount),
                initial_payment=Decimal(initial_payment),
            ),
            money=money,
        )
        return result.student

    return _make_student


@pytest.fixture
async def student(make_student) -> Student:
    """An active EUR student with a final price of 1000 and nothing paid."""
    return await make_student()
