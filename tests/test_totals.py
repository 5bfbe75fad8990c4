"""
Total-consistency tests: cause and campaign totals against the donation ledger
"""
import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from fundraising.core.errors import (
    ConflictError,
    ConsistencyError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from fundraising.models import Campaign, Cause, Donation, DonationStatus, DonationType, can_transition
from fundraising.services.totals import TotalsMaintainer


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def cache():
    mock = AsyncMock()
    mock.invalidate_campaign = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def maintainer(session_factory, cache, circuit_breaker):
    return TotalsMaintainer(session_factory, cache=cache, circuit_breaker=circuit_breaker)


@pytest_asyncio.fixture
async def ledger(seed):
    """Organization with a 1000 cause inside a campaign, and one donor"""
    org = await seed.organization()
    cause = await seed.cause(org.id, target="1000")
    campaign = await seed.campaign([org.id], [cause.id], target="1000")
    donor = await seed.donor("donor@example.com")
    return {"org": org, "cause": cause, "campaign": campaign, "donor": donor}


async def read_totals(session_factory, cause_id, campaign_id):
    async with session_factory() as session:
        raised = (await session.execute(select(Cause.raised_amount).where(Cause.id == cause_id))).scalar_one()
        campaign = (await session.execute(
            select(Campaign.total_raised_amount, Campaign.total_supporters).where(Campaign.id == campaign_id)
        )).one()
        return raised, campaign.total_raised_amount, campaign.total_supporters


async def counted_sum(session_factory, cause_id):
    async with session_factory() as session:
        return (await session.execute(
            select(func.coalesce(func.sum(Donation.amount), 0)).where(
                Donation.cause_id == cause_id,
                Donation.type == DonationType.MONEY,
                Donation.status.in_([DonationStatus.CONFIRMED, DonationStatus.RECEIVED]),
            )
        )).scalar_one()


async def pending(seed, ledger, amount="400", **kwargs):
    return await seed.donation(
        ledger["donor"].id, ledger["org"].id, ledger["cause"].id, amount,
        campaign_id=ledger["campaign"].id, status=DonationStatus.PENDING, **kwargs,
    )


class TestConfirmation:
    """PENDING -> CONFIRMED adds the amount exactly once"""

    @pytest.mark.asyncio
    async def test_confirmed_donation_updates_cause_and_campaign(self, maintainer, seed, ledger, session_factory, cache):
        donation = await pending(seed, ledger)

        outcome = await maintainer.on_donation_status_changed(
            donation.id, DonationStatus.PENDING, DonationStatus.CONFIRMED
        )

        assert outcome.applied is True
        assert outcome.duplicate is False
        assert await read_totals(session_factory, ledger["cause"].id, ledger["campaign"].id) == (
            Decimal("400"), Decimal("400"), 1
        )
        cache.invalidate_campaign.assert_awaited_once_with(ledger["campaign"].id)

    @pytest.mark.asyncio
    async def test_redelivered_confirmation_is_not_double_counted(self, maintainer, seed, ledger, session_factory):
        donation = await pending(seed, ledger)

        await maintainer.on_donation_status_changed(donation.id, "PENDING", "CONFIRMED")
        again = await maintainer.on_donation_status_changed(donation.id, "PENDING", "CONFIRMED")

        assert again.duplicate is True
        assert again.applied is False
        raised, campaign_raised, supporters = await read_totals(
            session_factory, ledger["cause"].id, ledger["campaign"].id
        )
        assert raised == Decimal("400")
        assert supporters == 1
        assert raised == await counted_sum(session_factory, ledger["cause"].id)

    @pytest.mark.asyncio
    async def test_received_after_confirmed_adds_nothing(self, maintainer, seed, ledger, session_factory):
        donation = await pending(seed, ledger)

        await maintainer.on_donation_status_changed(donation.id, DonationStatus.PENDING, DonationStatus.CONFIRMED)
        outcome = await maintainer.on_donation_status_changed(
            donation.id, DonationStatus.CONFIRMED, DonationStatus.RECEIVED
        )

        assert outcome.applied is False
        assert outcome.status == DonationStatus.RECEIVED
        assert await read_totals(session_factory, ledger["cause"].id, ledger["campaign"].id) == (
            Decimal("400"), Decimal("400"), 1
        )

    @pytest.mark.asyncio
    async def test_failed_donation_leaves_totals(self, maintainer, seed, ledger, session_factory):
        donation = await pending(seed, ledger)

        outcome = await maintainer.on_donation_status_changed(
            donation.id, DonationStatus.PENDING, DonationStatus.FAILED
        )

        assert outcome.applied is False
        assert await read_totals(session_factory, ledger["cause"].id, ledger["campaign"].id) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_in_kind_donation_changes_status_only(self, maintainer, seed, ledger, session_factory):
        donation = await pending(seed, ledger, amount=None, type=DonationType.CLOTHES)

        outcome = await maintainer.on_donation_status_changed(
            donation.id, DonationStatus.PENDING, DonationStatus.CONFIRMED
        )

        assert outcome.applied is False
        assert await read_totals(session_factory, ledger["cause"].id, ledger["campaign"].id) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_donation_without_campaign_only_touches_cause(self, maintainer, seed, ledger, session_factory):
        donation = await seed.donation(
            ledger["donor"].id, ledger["org"].id, ledger["cause"].id, "75", status=DonationStatus.PENDING
        )

        await maintainer.on_donation_status_changed(donation.id, DonationStatus.PENDING, DonationStatus.CONFIRMED)

        assert await read_totals(session_factory, ledger["cause"].id, ledger["campaign"].id) == (
            Decimal("75"), 0, 0
        )


class TestStatusMachine:

    def test_terminal_statuses_have_no_exits(self):
        for status in DonationStatus:
            if status.is_terminal:
                assert not any(can_transition(status, new) for new in DonationStatus)

    def test_counted_statuses(self):
        assert [s for s in DonationStatus if s.is_counted] == [DonationStatus.CONFIRMED, DonationStatus.RECEIVED]


class TestRejectedTransitions:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("previous,new", [
        (DonationStatus.RECEIVED, DonationStatus.CONFIRMED),
        (DonationStatus.FAILED, DonationStatus.CONFIRMED),
        (DonationStatus.PENDING, DonationStatus.RECEIVED),
        (DonationStatus.CONFIRMED, DonationStatus.PENDING),
    ])
    async def test_transition_outside_lifecycle(self, maintainer, previous, new):
        with pytest.raises(ValidationError):
            await maintainer.on_donation_status_changed(1, previous, new)

    @pytest.mark.asyncio
    async def test_unknown_status_name(self, maintainer):
        with pytest.raises(ValidationError):
            await maintainer.on_donation_status_changed(1, "PENDING", "REFUNDED")

    @pytest.mark.asyncio
    async def test_unknown_donation(self, maintainer, ledger):
        with pytest.raises(NotFoundError):
            await maintainer.on_donation_status_changed(999, DonationStatus.PENDING, DonationStatus.CONFIRMED)

    @pytest.mark.asyncio
    async def test_stale_previous_status_conflicts(self, maintainer, seed, ledger):
        donation = await pending(seed, ledger)
        await maintainer.on_donation_status_changed(donation.id, DonationStatus.PENDING, DonationStatus.FAILED)

        with pytest.raises(ConflictError):
            await maintainer.on_donation_status_changed(donation.id, DonationStatus.PENDING, DonationStatus.CONFIRMED)

    @pytest.mark.asyncio
    async def test_applied_before_counted_is_a_consistency_error(self, maintainer, seed, ledger, session_factory):
        donation = await pending(seed, ledger, applied=True)

        with pytest.raises(ConsistencyError):
            await maintainer.on_donation_status_changed(
                donation.id, DonationStatus.PENDING, DonationStatus.CONFIRMED
            )

        # Rolled back: status unchanged, totals untouched
        async with session_factory() as session:
            status = (await session.execute(select(Donation.status).where(Donation.id == donation.id))).scalar_one()
        assert status == DonationStatus.PENDING
        assert await read_totals(session_factory, ledger["cause"].id, ledger["campaign"].id) == (0, 0, 0)


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_concurrent_confirmations_lose_no_update(self, maintainer, seed, ledger, session_factory):
        donations = [await pending(seed, ledger, amount=str(10 * (i + 1))) for i in range(8)]

        await asyncio.gather(*[
            maintainer.on_donation_status_changed(d.id, DonationStatus.PENDING, DonationStatus.CONFIRMED)
            for d in donations
        ])

        raised, campaign_raised, supporters = await read_totals(
            session_factory, ledger["cause"].id, ledger["campaign"].id
        )
        assert raised == Decimal("360")
        assert campaign_raised == Decimal("360")
        assert supporters == 8
        assert raised == await counted_sum(session_factory, ledger["cause"].id)

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_apply_once(self, maintainer, seed, ledger, session_factory):
        donation = await pending(seed, ledger)

        outcomes = await asyncio.gather(*[
            maintainer.on_donation_status_changed(donation.id, DonationStatus.PENDING, DonationStatus.CONFIRMED)
            for _ in range(4)
        ])

        assert sum(1 for o in outcomes if o.applied) == 1
        assert sum(1 for o in outcomes if o.duplicate) == 3
        assert await read_totals(session_factory, ledger["cause"].id, ledger["campaign"].id) == (
            Decimal("400"), Decimal("400"), 1
        )


class FlakySessions:
    """Session factory whose first ``failures`` sessions lose the database connection"""

    def __init__(self, session_factory, failures):
        self.session_factory = session_factory
        self.failures = failures

    def __call__(self):
        session = self.session_factory()
        if self.failures > 0:
            self.failures -= 1
            session.execute = AsyncMock(
                side_effect=OperationalError("UPDATE donations", {}, Exception("server closed the connection"))
            )
        return session


class TestStoreFailures:

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, seed, ledger, session_factory, cache, circuit_breaker):
        donation = await pending(seed, ledger)
        maintainer = TotalsMaintainer(FlakySessions(session_factory, 1), cache=cache, circuit_breaker=circuit_breaker)

        outcome = await maintainer.on_donation_status_changed(
            donation.id, DonationStatus.PENDING, DonationStatus.CONFIRMED
        )

        assert outcome.applied
        assert await read_totals(session_factory, ledger["cause"].id, ledger["campaign"].id) == (
            Decimal("400"), Decimal("400"), 1
        )

    @pytest.mark.asyncio
    async def test_persistent_failure_is_store_unavailable(self, seed, ledger, session_factory, cache,
                                                           circuit_breaker):
        donation = await pending(seed, ledger)
        maintainer = TotalsMaintainer(FlakySessions(session_factory, 5), cache=cache, circuit_breaker=circuit_breaker)

        with pytest.raises(StoreUnavailableError):
            await maintainer.on_donation_status_changed(
                donation.id, DonationStatus.PENDING, DonationStatus.CONFIRMED
            )

        assert await read_totals(session_factory, ledger["cause"].id, ledger["campaign"].id) == (0, 0, 0)
        cache.invalidate_campaign.assert_not_awaited()
