"""
Donation recording and visibility tests
"""
from decimal import Decimal

import pytest
import pytest_asyncio
from pydantic import ValidationError as SchemaValidationError

from fundraising.core.auth import CallerIdentity, Role
from fundraising.core.errors import AuthorizationError, NotFoundError, ValidationError
from fundraising.models import DonationStatus, DonationType
from fundraising.schemas.donation import CreateDonationRequest
from fundraising.services.donation import DonationService


# ============================================================================
# FIXTURES
# ============================================================================

@pytest_asyncio.fixture
async def ledger(seed):
    org = await seed.organization("Blood Bank")
    other_org = await seed.organization("Elsewhere")
    cause = await seed.cause(org.id, target="1000")
    loose_cause = await seed.cause(org.id, target="200", title="Ambulance")
    campaign = await seed.campaign([org.id], [cause.id])
    donor = await seed.donor("donor@example.com")
    return {
        "org": org,
        "other_org": other_org,
        "cause": cause,
        "loose_cause": loose_cause,
        "campaign": campaign,
        "donor": donor,
    }


@pytest.fixture
def donor(ledger):
    return CallerIdentity(user_id=ledger["donor"].id, role=Role.DONOR)


def money(ledger, amount="50", **overrides):
    data = dict(
        organization_id=ledger["org"].id,
        cause_id=ledger["cause"].id,
        campaign_id=ledger["campaign"].id,
        type=DonationType.MONEY,
        amount=Decimal(amount) if amount is not None else None,
    )
    data.update(overrides)
    return CreateDonationRequest(**data)


class TestCreateDonation:

    @pytest.mark.asyncio
    async def test_recorded_as_pending_and_not_applied(self, db_session, ledger, donor):
        donation = await DonationService.create_donation(db_session, donor, money(ledger))

        assert donation.status == DonationStatus.PENDING
        assert donation.applied_to_totals is False
        assert donation.donor_id == donor.user_id
        assert donation.amount == Decimal("50")

    @pytest.mark.asyncio
    async def test_money_requires_amount(self, db_session, ledger, donor):
        request = CreateDonationRequest(organization_id=ledger["org"].id, cause_id=ledger["cause"].id)

        with pytest.raises(ValidationError):
            await DonationService.create_donation(db_session, donor, request)

    @pytest.mark.asyncio
    async def test_only_donors_donate(self, db_session, ledger, org_caller):
        with pytest.raises(AuthorizationError):
            await DonationService.create_donation(db_session, org_caller(ledger["org"].id), money(ledger))

    @pytest.mark.asyncio
    async def test_unregistered_donor(self, db_session, ledger, donor):
        ghost = CallerIdentity(user_id=donor.user_id + 1000, role=Role.DONOR)

        with pytest.raises(NotFoundError):
            await DonationService.create_donation(db_session, ghost, money(ledger))
        assert (await DonationService.list_donor_donations(db_session, donor)).total == 0

    @pytest.mark.asyncio
    async def test_cause_must_belong_to_organization(self, db_session, ledger, donor):
        with pytest.raises(ValidationError):
            await DonationService.create_donation(
                db_session, donor, money(ledger, organization_id=ledger["other_org"].id, campaign_id=None)
            )

    @pytest.mark.asyncio
    async def test_unknown_cause(self, db_session, ledger, donor):
        with pytest.raises(NotFoundError):
            await DonationService.create_donation(db_session, donor, money(ledger, cause_id=999))

    @pytest.mark.asyncio
    async def test_cause_must_be_in_campaign(self, db_session, ledger, donor):
        with pytest.raises(ValidationError):
            await DonationService.create_donation(db_session, donor, money(ledger, cause_id=ledger["loose_cause"].id))

    @pytest.mark.asyncio
    async def test_campaign_must_accept_type(self, db_session, ledger, donor):
        request = money(ledger, type=DonationType.BLOOD, amount=None, quantity=1)

        with pytest.raises(ValidationError):
            await DonationService.create_donation(db_session, donor, request)

    @pytest.mark.asyncio
    async def test_in_kind_without_campaign(self, db_session, ledger, donor):
        request = money(ledger, type=DonationType.FOOD, amount=None, quantity=12, campaign_id=None)

        donation = await DonationService.create_donation(db_session, donor, request)

        assert donation.type == DonationType.FOOD
        assert donation.quantity == 12
        assert donation.amount is None


class TestDonationVisibility:

    @pytest.mark.asyncio
    async def test_donor_and_receiving_organization_can_read(self, db_session, ledger, donor, org_caller, admin):
        donation = await DonationService.create_donation(db_session, donor, money(ledger))

        for caller in (donor, org_caller(ledger["org"].id), admin):
            assert (await DonationService.get_donation(db_session, caller, donation.id)).id == donation.id

    @pytest.mark.asyncio
    async def test_strangers_get_not_found(self, db_session, ledger, donor, org_caller):
        donation = await DonationService.create_donation(db_session, donor, money(ledger))
        stranger = CallerIdentity(user_id=donor.user_id + 1, role=Role.DONOR)

        with pytest.raises(NotFoundError):
            await DonationService.get_donation(db_session, stranger, donation.id)
        with pytest.raises(NotFoundError):
            await DonationService.get_donation(db_session, org_caller(ledger["other_org"].id), donation.id)

    @pytest.mark.asyncio
    async def test_listings(self, db_session, ledger, donor, org_caller, seed):
        await DonationService.create_donation(db_session, donor, money(ledger, "10"))
        await seed.donation(ledger["donor"].id, ledger["org"].id, ledger["cause"].id, "20")

        mine = await DonationService.list_donor_donations(db_session, donor)
        pending = await DonationService.list_organization_donations(
            db_session, org_caller(ledger["org"].id), ledger["org"].id, status=DonationStatus.PENDING
        )

        assert mine.total == 2
        assert pending.total == 1
        assert pending.donations[0].amount == Decimal("10")

    @pytest.mark.asyncio
    async def test_other_organization_cannot_list(self, db_session, ledger, org_caller):
        with pytest.raises(AuthorizationError):
            await DonationService.list_organization_donations(
                db_session, org_caller(ledger["other_org"].id), ledger["org"].id
            )


class TestDonationRequest:
    """Money amounts must fit the ledger's 12-digit, 2-place columns"""

    @pytest.mark.parametrize("amount", ["0.004", "10.999", "10000000000", "0"])
    def test_unstorable_amount_rejected(self, amount):
        with pytest.raises(SchemaValidationError):
            CreateDonationRequest(organization_id=1, cause_id=1, amount=Decimal(amount))

    @pytest.mark.parametrize("amount", ["0.01", "9999999999.99"])
    def test_boundary_amount_accepted(self, amount):
        request = CreateDonationRequest(organization_id=1, cause_id=1, amount=Decimal(amount))

        assert request.amount == Decimal(amount)
