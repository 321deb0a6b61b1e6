"""Pytest fixtures for settlement engine tests."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shift_settlement.config import Settings
from shift_settlement.models import (
    Base,
    Client,
    NdisBudget,
    NdisPricing,
    PayScale,
    Shift,
    Tenant,
    User,
)

# Use in-memory SQLite for tests (with async support)
# StaticPool keeps one connection so every session sees the same database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def settings() -> Settings:
    """Deterministic settings, independent of the environment."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        local_timezone="Australia/Sydney",
        pay_periods_per_year=26,
        statutory_minimum_rate=Decimal("25.41"),
        super_rate=Decimal("0.11"),
        medicare_levy_rate=Decimal("0.02"),
        tax_year=2025,
        pay_period_anchor=date(2024, 1, 1),
        log_level="DEBUG",
    )


@pytest_asyncio.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def test_tenant(session: AsyncSession) -> Tenant:
    """Create a test tenant."""
    tenant = Tenant(
        tenant_id=uuid4(),
        name="Sunrise Support Services",
        status="active",
    )
    session.add(tenant)
    await session.flush()
    return tenant


@pytest_asyncio.fixture
async def test_worker(session: AsyncSession, test_tenant: Tenant) -> User:
    """Create a part-time support worker on level 2, pay point 1."""
    user = User(
        user_id=uuid4(),
        tenant_id=test_tenant.tenant_id,
        full_name="Alex Taylor",
        employment_type="Part Time",
        pay_level=2,
        pay_point=1,
        status="active",
    )
    session.add(user)
    await session.flush()
    return user


@pytest_asyncio.fixture
async def test_pay_scales(session: AsyncSession, test_tenant: Tenant) -> list[PayScale]:
    """Create pay scale rows for level 2."""
    scales = [
        PayScale(
            tenant_id=test_tenant.tenant_id,
            level=2,
            pay_point=1,
            employment_type="part-time",
            hourly_rate=Decimal("40.00"),
            effective_date=date(2024, 7, 1),
        ),
        PayScale(
            tenant_id=test_tenant.tenant_id,
            level=2,
            pay_point=1,
            employment_type="casual",
            hourly_rate=Decimal("50.00"),
            effective_date=date(2024, 7, 1),
        ),
    ]
    session.add_all(scales)
    await session.flush()
    return scales


@pytest_asyncio.fixture
async def test_client(session: AsyncSession, test_tenant: Tenant) -> Client:
    client = Client(
        client_id=uuid4(),
        tenant_id=test_tenant.tenant_id,
        display_name="Jordan Lee",
        ndis_number="430000001",
    )
    session.add(client)
    await session.flush()
    return client


@pytest_asyncio.fixture
async def test_budget(session: AsyncSession, test_tenant: Tenant, test_client: Client) -> NdisBudget:
    """Create a budget with $500 of community access funding."""
    budget = NdisBudget(
        tenant_id=test_tenant.tenant_id,
        client_id=test_client.client_id,
        community_access_allocated=Decimal("5000.00"),
        community_access_remaining=Decimal("500.00"),
        sil_allocated=Decimal("20000.00"),
        sil_remaining=Decimal("2000.00"),
        capacity_building_allocated=Decimal("1000.00"),
        capacity_building_remaining=Decimal("1000.00"),
    )
    session.add(budget)
    await session.flush()
    return budget


@pytest_asyncio.fixture
async def test_pricing(session: AsyncSession, test_tenant: Tenant) -> list[NdisPricing]:
    """Create tenant pricing for 1:1 support."""
    pricing = [
        NdisPricing(tenant_id=test_tenant.tenant_id, shift_type="AM", ratio="1:1", rate=Decimal("40.00")),
        NdisPricing(tenant_id=test_tenant.tenant_id, shift_type="PM", ratio="1:1", rate=Decimal("44.00")),
        NdisPricing(
            tenant_id=test_tenant.tenant_id, shift_type="ActiveNight", ratio="1:1", rate=Decimal("48.00")
        ),
        NdisPricing(
            tenant_id=test_tenant.tenant_id, shift_type="Sleepover", ratio="1:1", rate=Decimal("30.00")
        ),
    ]
    session.add_all(pricing)
    await session.flush()
    return pricing


@pytest.fixture
def make_shift(session: AsyncSession, test_tenant: Tenant, test_client: Client, test_worker: User):
    """Factory for completed shifts on 3 March 2025."""

    async def _make_shift(
        start: datetime = datetime(2025, 3, 3, 9, 0),
        end: datetime | None = datetime(2025, 3, 3, 17, 0),
        **overrides,
    ) -> Shift:
        values = {
            "tenant_id": test_tenant.tenant_id,
            "client_id": test_client.client_id,
            "user_id": test_worker.user_id,
            "title": "Community access",
            "start_time": start,
            "end_time": end,
            "status": "completed",
            "staff_ratio": "1:1",
        }
        values.update(overrides)
        shift = Shift(shift_id=uuid4(), **values)
        session.add(shift)
        await session.flush()
        return shift

    return _make_shift


@pytest_asyncio.fixture
async def test_manager(session: AsyncSession, test_tenant: Tenant) -> User:
    """Create a rostering manager who approves timesheets."""
    user = User(
        user_id=uuid4(),
        tenant_id=test_tenant.tenant_id,
        full_name="Sam Nguyen",
        employment_type="full-time",
        pay_level=4,
        pay_point=2,
        status="active",
    )
    session.add(user)
    await session.flush()
    return user
