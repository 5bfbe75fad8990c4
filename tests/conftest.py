"""
Shared fixtures: a throwaway SQLite database per test, seed helpers, callers
"""
import os

# Must be set before fundraising.core.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./fundraising_test.db")
os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("KAFKA_ENABLED", "false")
os.environ.setdefault("REDIS_URL", "")

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio

from fundraising.core.auth import CallerIdentity, Role
from fundraising.core.circuit_breaker import CircuitBreaker
from fundraising.database.database import create_engine_for, create_session_factory
from fundraising.models import (
    Base,
    Campaign,
    CampaignCause,
    CampaignOrganization,
    CampaignStatus,
    Cause,
    Donation,
    DonationStatus,
    DonationType,
    Donor,
    Feedback,
    FeedbackStatus,
    Organization,
)
from fundraising.store.ledger import SqlLedgerStore

NOW = datetime(2026, 10, 19, 12, 0, 0)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Fresh SQLite file with all tables"""
    test_engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def circuit_breaker():
    """Private breaker so one test's failures never open the global circuit"""
    return CircuitBreaker(failure_threshold=100, call_timeout=5.0, retry_attempts=2, retry_backoff=0.0)


@pytest.fixture
def store(session_factory, circuit_breaker):
    return SqlLedgerStore(session_factory, circuit_breaker)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def admin():
    return CallerIdentity(user_id=1, role=Role.ADMIN)


@pytest.fixture
def donor_caller():
    return CallerIdentity(user_id=1, role=Role.DONOR)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def org_caller():
    """Factory for organization callers"""
    def make(organization_id: int, user_id: int = 100) -> CallerIdentity:
        return CallerIdentity(user_id=user_id, role=Role.ORGANIZATION, organization_id=organization_id)
    return make


class Seeder:
    """Inserts ledger rows directly, bypassing services"""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _add(self, instance):
        async with self.session_factory() as session:
            session.add(instance)
            await session.commit()
        return instance

    async def organization(self, name="Helping Hands", **kwargs):
        return await self._add(Organization(name=name, is_verified=True, created_at=NOW, **kwargs))

    async def donor(self, email, first_name="Ada", last_name="Donor"):
        return await self._add(Donor(first_name=first_name, last_name=last_name, email=email, created_at=NOW))

    async def cause(self, organization_id, target="1000", raised="0", title="Clean water"):
        return await self._add(Cause(
            organization_id=organization_id,
            title=title,
            description=f"{title} description",
            target_amount=Decimal(target),
            raised_amount=Decimal(raised),
            tags=[],
            created_at=NOW,
            updated_at=NOW,
        ))

    async def campaign(self, organization_ids, cause_ids, target="1000", title="Winter relief", *,
                       status=CampaignStatus.ACTIVE, raised="0", supporters=0):
        campaign = Campaign(
            title=title,
            description="Winter relief for families",
            start_date=NOW - timedelta(days=30),
            end_date=NOW + timedelta(days=60),
            status=status,
            accepted_donation_types=["MONEY", "CLOTHES"],
            donation_type="MONEY",
            target_amount=Decimal(target),
            target_quantity=0,
            location="Dhaka",
            requirements=[],
            impact="Warm homes",
            tags=[],
            total_target_amount=Decimal(target),
            total_raised_amount=Decimal(raised),
            total_supporters=supporters,
            created_at=NOW,
            updated_at=NOW,
        )
        campaign.cause_links = [CampaignCause(cause_id=c, position=i) for i, c in enumerate(cause_ids)]
        campaign.organization_links = [CampaignOrganization(organization_id=o) for o in organization_ids]
        return await self._add(campaign)

    async def donation(self, donor_id, organization_id, cause_id, amount="100", *,
                       campaign_id=None, status=DonationStatus.CONFIRMED, type=DonationType.MONEY,
                       created_at=NOW, applied=None):
        if applied is None:
            applied = status in (DonationStatus.CONFIRMED, DonationStatus.RECEIVED) and type == DonationType.MONEY
        return await self._add(Donation(
            donor_id=donor_id,
            organization_id=organization_id,
            cause_id=cause_id,
            campaign_id=campaign_id,
            type=type,
            amount=Decimal(amount) if amount is not None else None,
            quantity=None if type == DonationType.MONEY else 5,
            status=status,
            applied_to_totals=applied,
            created_at=created_at,
            updated_at=created_at,
        ))

    async def feedback(self, donor_id, organization_id, rating, *, is_public=True,
                       status=FeedbackStatus.PUBLISHED, comment=None):
        return await self._add(Feedback(
            donor_id=donor_id,
            organization_id=organization_id,
            rating=rating,
            comment=comment,
            is_public=is_public,
            status=status,
            created_at=NOW,
            updated_at=NOW,
        ))


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)
