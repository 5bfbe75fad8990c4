from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from fundraising.core.auth import CallerIdentity, Role, can_access_organization
from fundraising.core.errors import AuthorizationError, NotFoundError, ValidationError
from fundraising.models import Campaign, Cause, Donation, DonationStatus, DonationType, Donor, utcnow
from fundraising.schemas.donation import CreateDonationRequest, DonationListResponse, DonationResponse

logger = structlog.get_logger(__name__)


class DonationService:
    """Records donations. Status changes go through the totals maintainer, never through here."""

    @staticmethod
    async def create_donation(db: AsyncSession, caller: CallerIdentity,
                              donation_data: CreateDonationRequest) -> DonationResponse:
        """Record a PENDING donation from the calling donor"""
        if caller.role != Role.DONOR:
            raise AuthorizationError("Only donors can make donations")
        if await db.get(Donor, caller.user_id) is None:
            raise NotFoundError(f"Donor {caller.user_id} not found")

        if donation_data.type == DonationType.MONEY and donation_data.amount is None:
            raise ValidationError("Money donations require a positive amount")

        cause = await db.get(Cause, donation_data.cause_id)
        if cause is None:
            raise NotFoundError(f"Cause {donation_data.cause_id} not found")
        if cause.organization_id != donation_data.organization_id:
            raise ValidationError(
                "Cause does not belong to the given organization",
                details={"cause_id": cause.id, "organization_id": donation_data.organization_id},
            )

        if donation_data.campaign_id is not None:
            campaign = await db.get(Campaign, donation_data.campaign_id)
            if campaign is None:
                raise NotFoundError(f"Campaign {donation_data.campaign_id} not found")
            if cause.id not in campaign.cause_ids:
                raise ValidationError(
                    "Cause is not part of the campaign",
                    details={"cause_id": cause.id, "campaign_id": campaign.id},
                )
            if donation_data.type.value not in campaign.accepted_donation_types:
                raise ValidationError(
                    f"Campaign does not accept {donation_data.type.value} donations",
                    details={"accepted_donation_types": campaign.accepted_donation_types},
                )

        now = utcnow()
        donation = Donation(
            donor_id=caller.user_id,
            organization_id=donation_data.organization_id,
            cause_id=donation_data.cause_id,
            campaign_id=donation_data.campaign_id,
            type=donation_data.type,
            amount=donation_data.amount,
            quantity=donation_data.quantity,
            description=donation_data.description,
            status=DonationStatus.PENDING,
            applied_to_totals=False,
            payment_reference=donation_data.payment_reference,
            created_at=now,
            updated_at=now,
        )
        db.add(donation)
        await db.commit()

        logger.info("Donation recorded", donation_id=donation.id, donor_id=caller.user_id,
                    cause_id=donation.cause_id, type=donation.type.value)
        return DonationResponse.model_validate(donation)

    @staticmethod
    async def get_donation(db: AsyncSession, caller: CallerIdentity, donation_id: int) -> DonationResponse:
        """Donors see their own donations, organizations the ones they received"""
        donation = await db.get(Donation, donation_id, populate_existing=True)
        if donation is None:
            raise NotFoundError(f"Donation {donation_id} not found")

        visible = (
            can_access_organization(caller, donation.organization_id)
            or (caller.role == Role.DONOR and donation.donor_id == caller.user_id)
        )
        if not visible:
            raise NotFoundError(f"Donation {donation_id} not found")
        return DonationResponse.model_validate(donation)

    @staticmethod
    async def list_donor_donations(db: AsyncSession, caller: CallerIdentity,
                                   skip: int = 0, limit: int = 100) -> DonationListResponse:
        if caller.role != Role.DONOR:
            raise AuthorizationError("Only donors have a donation history")
        return await DonationService._list(db, [Donation.donor_id == caller.user_id], skip, limit)

    @staticmethod
    async def list_organization_donations(db: AsyncSession, caller: CallerIdentity, organization_id: int,
                                          status: Optional[DonationStatus] = None,
                                          skip: int = 0, limit: int = 100) -> DonationListResponse:
        if not can_access_organization(caller, organization_id):
            raise AuthorizationError("Cannot read another organization's donations")

        conditions = [Donation.organization_id == organization_id]
        if status is not None:
            conditions.append(Donation.status == status)
        return await DonationService._list(db, conditions, skip, limit)

    @staticmethod
    async def _list(db: AsyncSession, conditions, skip: int, limit: int) -> DonationListResponse:
        total = (await db.execute(select(func.count()).select_from(Donation).where(*conditions))).scalar_one()
        result = await db.execute(
            select(Donation)
            .where(*conditions)
            .order_by(Donation.created_at.desc(), Donation.id.desc())
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        donations = [DonationResponse.model_validate(d) for d in result.scalars().all()]
        return DonationListResponse(donations=donations, total=total)
