from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from fundraising.cache.redis import redis_cache
from fundraising.core.auth import CallerIdentity, require_organization
from fundraising.core.errors import AuthorizationError, ConflictError, NotFoundError
from fundraising.models import CampaignCause, Cause, Donation, utcnow
from fundraising.schemas.cause import CauseListResponse, CauseResponse, CreateCauseRequest, UpdateCauseRequest
from fundraising.services.campaign import CampaignService

logger = structlog.get_logger(__name__)


class CauseService:
    """Business logic for causes"""

    @staticmethod
    async def _load_owned(db: AsyncSession, caller: CallerIdentity, cause_id: int) -> Cause:
        organization_id = require_organization(caller)
        cause = await db.get(Cause, cause_id, populate_existing=True)
        if cause is None:
            raise NotFoundError(f"Cause {cause_id} not found")
        if cause.organization_id != organization_id:
            raise AuthorizationError("Cause belongs to another organization")
        return cause

    @staticmethod
    async def create_cause(db: AsyncSession, caller: CallerIdentity, cause_data: CreateCauseRequest) -> CauseResponse:
        organization_id = require_organization(caller)

        now = utcnow()
        cause = Cause(
            organization_id=organization_id,
            title=cause_data.title,
            description=cause_data.description,
            target_amount=cause_data.target_amount,
            raised_amount=0,
            image_url=cause_data.image_url,
            tags=cause_data.tags,
            created_at=now,
            updated_at=now,
        )
        db.add(cause)
        await db.commit()

        logger.info("Cause created", cause_id=cause.id, organization_id=organization_id)
        return CauseResponse.model_validate(cause)

    @staticmethod
    async def update_cause(db: AsyncSession, caller: CallerIdentity, cause_id: int,
                           cause_data: UpdateCauseRequest) -> CauseResponse:
        """Update descriptive fields and the target; ``raised_amount`` is never written here"""
        cause = await CauseService._load_owned(db, caller, cause_id)

        for name, value in cause_data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(cause, name, value)
        cause.updated_at = utcnow()

        # The target feeds campaign.total_target_amount; both land in one commit
        campaign_ids = []
        if cause_data.target_amount is not None:
            await db.flush()
            campaign_ids = await CampaignService.refresh_total_targets(db, cause_id)
        await db.commit()

        for campaign_id in campaign_ids:
            await redis_cache.invalidate_campaign(campaign_id)

        logger.info("Cause updated", cause_id=cause_id)
        return CauseResponse.model_validate(cause)

    @staticmethod
    async def delete_cause(db: AsyncSession, caller: CallerIdentity, cause_id: int) -> None:
        cause = await CauseService._load_owned(db, caller, cause_id)

        donations = (await db.execute(
            select(func.count()).select_from(Donation).where(Donation.cause_id == cause_id)
        )).scalar_one()
        if donations:
            raise ConflictError("Cause has donations and cannot be deleted", details={"donation_count": donations})

        campaigns = (await db.execute(
            select(CampaignCause.campaign_id).where(CampaignCause.cause_id == cause_id)
        )).scalars().all()
        if campaigns:
            raise ConflictError("Cause is part of campaigns and cannot be deleted",
                                details={"campaign_ids": sorted(campaigns)})

        await db.delete(cause)
        await db.commit()
        logger.info("Cause deleted", cause_id=cause_id)

    @staticmethod
    async def get_cause(db: AsyncSession, cause_id: int) -> CauseResponse:
        cause = await db.get(Cause, cause_id, populate_existing=True)
        if cause is None:
            raise NotFoundError(f"Cause {cause_id} not found")
        return CauseResponse.model_validate(cause)

    @staticmethod
    async def list_organization_causes(db: AsyncSession, organization_id: int,
                                       skip: int = 0, limit: int = 100) -> CauseListResponse:
        total = (await db.execute(
            select(func.count()).select_from(Cause).where(Cause.organization_id == organization_id)
        )).scalar_one()
        result = await db.execute(
            select(Cause)
            .where(Cause.organization_id == organization_id)
            .order_by(Cause.created_at.desc(), Cause.id.desc())
            .offset(skip)
            .limit(limit)
        )
        causes = [CauseResponse.model_validate(cause) for cause in result.scalars().all()]
        return CauseListResponse(causes=causes, total=total)
