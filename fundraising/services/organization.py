from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from fundraising.core.auth import CallerIdentity, can_access_organization, require_admin
from fundraising.core.errors import AuthorizationError, ConflictError, NotFoundError
from fundraising.models import CampaignOrganization, Cause, Donor, Organization, utcnow
from fundraising.schemas.organization import (
    CreateDonorRequest,
    CreateOrganizationRequest,
    DonorResponse,
    OrganizationResponse,
)

logger = structlog.get_logger(__name__)


class OrganizationService:
    """Organizations and the donor directory"""

    @staticmethod
    async def create_organization(db: AsyncSession, caller: CallerIdentity,
                                  organization_data: CreateOrganizationRequest) -> OrganizationResponse:
        """Admin registers an organization"""
        require_admin(caller)

        organization = Organization(
            name=organization_data.name,
            contact_email=organization_data.contact_email,
            is_verified=organization_data.is_verified,
            created_at=utcnow(),
        )
        db.add(organization)
        await db.commit()

        logger.info("Organization created", organization_id=organization.id)
        return OrganizationResponse.model_validate(organization)

    @staticmethod
    async def get_organization(db: AsyncSession, organization_id: int) -> OrganizationResponse:
        organization = await db.get(Organization, organization_id)
        if organization is None:
            raise NotFoundError(f"Organization {organization_id} not found")
        return OrganizationResponse.model_validate(organization)

    @staticmethod
    async def delete_organization(db: AsyncSession, caller: CallerIdentity, organization_id: int) -> None:
        """Blocked while the organization owns causes or is the only one running a campaign"""
        if not can_access_organization(caller, organization_id):
            raise AuthorizationError("Cannot delete another organization")

        organization = await db.get(Organization, organization_id)
        if organization is None:
            raise NotFoundError(f"Organization {organization_id} not found")

        cause_count = (await db.execute(
            select(func.count()).select_from(Cause).where(Cause.organization_id == organization_id)
        )).scalar_one()
        if cause_count:
            raise ConflictError(
                "Organization still owns causes",
                details={"organization_id": organization_id, "cause_count": cause_count},
            )

        memberships = (await db.execute(
            select(CampaignOrganization.campaign_id).where(CampaignOrganization.organization_id == organization_id)
        )).scalars().all()
        if memberships:
            sole = (await db.execute(
                select(CampaignOrganization.campaign_id)
                .where(CampaignOrganization.campaign_id.in_(memberships))
                .group_by(CampaignOrganization.campaign_id)
                .having(func.count() == 1)
            )).scalars().all()
            if sole:
                raise ConflictError(
                    "Organization is the only one running some campaigns",
                    details={"campaign_ids": sorted(sole)},
                )
            for link in (await db.execute(
                select(CampaignOrganization).where(CampaignOrganization.organization_id == organization_id)
            )).scalars().all():
                await db.delete(link)

        await db.delete(organization)
        await db.commit()
        logger.info("Organization deleted", organization_id=organization_id)

    @staticmethod
    async def create_donor(db: AsyncSession, donor_data: CreateDonorRequest) -> DonorResponse:
        donor = Donor(
            first_name=donor_data.first_name,
            last_name=donor_data.last_name,
            email=donor_data.email,
            created_at=utcnow(),
        )
        db.add(donor)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(f"Donor with email {donor_data.email} already exists")

        logger.info("Donor created", donor_id=donor.id)
        return DonorResponse.model_validate(donor)

    @staticmethod
    async def get_donor(db: AsyncSession, donor_id: int) -> DonorResponse:
        donor = await db.get(Donor, donor_id)
        if donor is None:
            raise NotFoundError(f"Donor {donor_id} not found")
        return DonorResponse.model_validate(donor)
