from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import func, select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from fundraising.cache.redis import redis_cache
from fundraising.core.auth import CallerIdentity, require_organization
from fundraising.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from fundraising.core.numeric import to_decimal
from fundraising.kafka.producer import event_publisher
from fundraising.models import (
    Campaign,
    CampaignCause,
    CampaignOrganization,
    CampaignStatus,
    CampaignUpdate,
    Cause,
    Donation,
    Feedback,
    Organization,
    utcnow,
)
from fundraising.schemas.campaign import (
    CampaignListResponse,
    CampaignResponse,
    CampaignUpdateRequest,
    CampaignUpdateResponse,
    CreateCampaignRequest,
    UpdateCampaignRequest,
)

logger = structlog.get_logger(__name__)

# Plain columns copied from update requests
_UPDATABLE_FIELDS = (
    "title",
    "description",
    "status",
    "target_amount",
    "target_quantity",
    "location",
    "requirements",
    "impact",
    "image_url",
    "tags",
)


class CampaignService:
    """Business logic for campaign operations"""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _load_campaign(db: AsyncSession, campaign_id: int) -> Campaign:
        result = await db.execute(
            select(Campaign).where(Campaign.id == campaign_id).execution_options(populate_existing=True)
        )
        campaign = result.scalar_one_or_none()
        if campaign is None:
            raise NotFoundError(f"Campaign {campaign_id} not found")
        return campaign

    @staticmethod
    def _require_member(campaign: Campaign, caller: CallerIdentity) -> int:
        """Caller must be one of the organizations running the campaign"""
        organization_id = require_organization(caller)
        if organization_id not in campaign.organization_ids:
            raise AuthorizationError("Only organizations running this campaign can modify it")
        return organization_id

    @staticmethod
    async def _resolve_causes(db: AsyncSession, cause_ids: Sequence[int],
                              organization_ids: Iterable[int]) -> List[Cause]:
        """Load causes in request order; each must belong to one of ``organization_ids``"""
        if len(set(cause_ids)) != len(cause_ids):
            raise ValidationError("Cause ids must not repeat", details={"cause_ids": list(cause_ids)})

        result = await db.execute(select(Cause).where(Cause.id.in_(cause_ids)))
        by_id = {cause.id: cause for cause in result.scalars().all()}
        allowed = set(organization_ids)

        missing = [cause_id for cause_id in cause_ids if cause_id not in by_id]
        foreign = [cause_id for cause_id, cause in by_id.items() if cause.organization_id not in allowed]
        if missing or foreign:
            raise AuthorizationError(
                "Some causes do not exist or are not owned by the campaign's organizations",
                details={"missing": missing, "not_owned": sorted(foreign)},
            )
        return [by_id[cause_id] for cause_id in cause_ids]

    @staticmethod
    async def _total_target(db: AsyncSession, cause_ids: Sequence[int]) -> Decimal:
        if not cause_ids:
            return Decimal("0")
        result = await db.execute(
            select(func.coalesce(func.sum(Cause.target_amount), 0)).where(Cause.id.in_(cause_ids))
        )
        return to_decimal(result.scalar_one())

    @staticmethod
    def _sync_cause_links(campaign: Campaign, cause_ids: Sequence[int]) -> None:
        """Make the ordered links match ``cause_ids``, reusing rows that stay"""
        existing = {link.cause_id: link for link in campaign.cause_links}
        links = []
        for position, cause_id in enumerate(cause_ids):
            link = existing.get(cause_id) or CampaignCause(cause_id=cause_id)
            link.position = position
            links.append(link)
        campaign.cause_links = links

    @staticmethod
    def _validate_dates(start_date, end_date) -> None:
        if start_date >= end_date:
            raise ValidationError(
                "start_date must be before end_date",
                details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )

    @staticmethod
    async def _after_write(campaign: Campaign) -> CampaignResponse:
        await redis_cache.invalidate_campaign(campaign.id)
        return CampaignResponse.model_validate(campaign)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    async def create_campaign(db: AsyncSession, caller: CallerIdentity,
                              campaign_data: CreateCampaignRequest) -> CampaignResponse:
        """Create a campaign owned by the caller's organization"""
        organization_id = require_organization(caller)
        CampaignService._validate_dates(campaign_data.start_date, campaign_data.end_date)

        causes = await CampaignService._resolve_causes(db, campaign_data.cause_ids, [organization_id])

        now = utcnow()
        campaign = Campaign(
            title=campaign_data.title,
            description=campaign_data.description,
            start_date=campaign_data.start_date,
            end_date=campaign_data.end_date,
            status=campaign_data.status,
            accepted_donation_types=[t.value for t in campaign_data.accepted_donation_types],
            donation_type=campaign_data.donation_type.value,
            target_amount=campaign_data.target_amount,
            target_quantity=campaign_data.target_quantity,
            location=campaign_data.location,
            requirements=campaign_data.requirements,
            impact=campaign_data.impact,
            image_url=campaign_data.image_url,
            tags=campaign_data.tags,
            total_target_amount=sum((to_decimal(c.target_amount) for c in causes), Decimal("0")),
            total_raised_amount=Decimal("0"),
            total_supporters=0,
            created_at=now,
            updated_at=now,
        )
        campaign.cause_links = [
            CampaignCause(cause_id=cause.id, position=position) for position, cause in enumerate(causes)
        ]
        campaign.organization_links = [CampaignOrganization(organization_id=organization_id)]

        db.add(campaign)
        await db.commit()

        logger.info("Campaign created", campaign_id=campaign.id, organization_id=organization_id,
                    cause_count=len(causes))
        return CampaignResponse.model_validate(campaign)

    @staticmethod
    async def update_campaign(db: AsyncSession, caller: CallerIdentity, campaign_id: int,
                              campaign_data: UpdateCampaignRequest) -> CampaignResponse:
        """Partial update; replacing ``cause_ids`` re-checks ownership and the target total"""
        campaign = await CampaignService._load_campaign(db, campaign_id)
        CampaignService._require_member(campaign, caller)

        start_date = campaign_data.start_date or campaign.start_date
        end_date = campaign_data.end_date or campaign.end_date
        CampaignService._validate_dates(start_date, end_date)
        campaign.start_date = start_date
        campaign.end_date = end_date

        fields = campaign_data.model_dump(exclude_unset=True)
        for name in _UPDATABLE_FIELDS:
            if name in fields and fields[name] is not None:
                setattr(campaign, name, fields[name])
        if campaign_data.accepted_donation_types is not None:
            campaign.accepted_donation_types = [t.value for t in campaign_data.accepted_donation_types]
        if campaign_data.donation_type is not None:
            campaign.donation_type = campaign_data.donation_type.value

        if campaign_data.cause_ids is not None:
            causes = await CampaignService._resolve_causes(db, campaign_data.cause_ids, campaign.organization_ids)
            CampaignService._sync_cause_links(campaign, campaign_data.cause_ids)
            campaign.total_target_amount = sum((to_decimal(c.target_amount) for c in causes), Decimal("0"))

        campaign.updated_at = utcnow()
        await db.commit()

        logger.info("Campaign updated", campaign_id=campaign_id, fields=sorted(fields))
        await event_publisher.publish_campaign_updated(
            campaign.id, campaign.organization_ids, {"title": campaign.title, "change": "details"}
        )
        return await CampaignService._after_write(campaign)

    @staticmethod
    async def delete_campaign(db: AsyncSession, caller: CallerIdentity, campaign_id: int) -> None:
        """Delete a campaign and its update posts; refused once donations reference it"""
        campaign = await CampaignService._load_campaign(db, campaign_id)
        CampaignService._require_member(campaign, caller)

        donation_count = (await db.execute(
            select(func.count()).select_from(Donation).where(Donation.campaign_id == campaign_id)
        )).scalar_one()
        if donation_count:
            raise ConflictError(
                "Campaign has donations and cannot be deleted",
                details={"campaign_id": campaign_id, "donation_count": donation_count},
            )

        await db.execute(delete(CampaignUpdate).where(CampaignUpdate.campaign_id == campaign_id))
        await db.execute(
            update(Feedback)
            .where(Feedback.campaign_id == campaign_id)
            .values(campaign_id=None)
            .execution_options(synchronize_session=False)
        )
        await db.delete(campaign)
        await db.commit()

        await redis_cache.invalidate_campaign(campaign_id)
        logger.info("Campaign deleted", campaign_id=campaign_id)

    # ------------------------------------------------------------------
    # Causes and organizations
    # ------------------------------------------------------------------

    @staticmethod
    async def add_cause(db: AsyncSession, caller: CallerIdentity, campaign_id: int,
                        cause_id: int) -> CampaignResponse:
        campaign = await CampaignService._load_campaign(db, campaign_id)
        CampaignService._require_member(campaign, caller)

        if cause_id in campaign.cause_ids:
            raise ConflictError(f"Cause {cause_id} is already part of campaign {campaign_id}")

        cause = await db.get(Cause, cause_id)
        if cause is None:
            raise NotFoundError(f"Cause {cause_id} not found")
        if cause.organization_id not in campaign.organization_ids:
            raise AuthorizationError("Cause must belong to one of the campaign's organizations")

        cause_ids = campaign.cause_ids + [cause_id]
        CampaignService._sync_cause_links(campaign, cause_ids)
        campaign.total_target_amount = await CampaignService._total_target(db, cause_ids)
        campaign.updated_at = utcnow()
        await db.commit()

        logger.info("Cause added to campaign", campaign_id=campaign_id, cause_id=cause_id)
        return await CampaignService._after_write(campaign)

    @staticmethod
    async def remove_cause(db: AsyncSession, caller: CallerIdentity, campaign_id: int,
                           cause_id: int) -> CampaignResponse:
        campaign = await CampaignService._load_campaign(db, campaign_id)
        CampaignService._require_member(campaign, caller)

        if cause_id not in campaign.cause_ids:
            raise NotFoundError(f"Cause {cause_id} is not part of campaign {campaign_id}")
        if len(campaign.cause_ids) == 1:
            raise ConflictError("campaign must retain at least one cause")

        cause_ids = [existing for existing in campaign.cause_ids if existing != cause_id]
        CampaignService._sync_cause_links(campaign, cause_ids)
        campaign.total_target_amount = await CampaignService._total_target(db, cause_ids)
        campaign.updated_at = utcnow()
        await db.commit()

        logger.info("Cause removed from campaign", campaign_id=campaign_id, cause_id=cause_id)
        return await CampaignService._after_write(campaign)

    @staticmethod
    async def add_organization(db: AsyncSession, caller: CallerIdentity, campaign_id: int,
                               organization_id: int) -> CampaignResponse:
        campaign = await CampaignService._load_campaign(db, campaign_id)
        CampaignService._require_member(campaign, caller)

        if organization_id in campaign.organization_ids:
            raise ConflictError(f"Organization {organization_id} already runs campaign {campaign_id}")
        if await db.get(Organization, organization_id) is None:
            raise NotFoundError(f"Organization {organization_id} not found")

        campaign.organization_links.append(CampaignOrganization(organization_id=organization_id))
        campaign.updated_at = utcnow()
        await db.commit()

        logger.info("Organization added to campaign", campaign_id=campaign_id, organization_id=organization_id)
        return await CampaignService._after_write(campaign)

    @staticmethod
    async def remove_organization(db: AsyncSession, caller: CallerIdentity, campaign_id: int,
                                  organization_id: int) -> CampaignResponse:
        campaign = await CampaignService._load_campaign(db, campaign_id)
        CampaignService._require_member(campaign, caller)

        if organization_id not in campaign.organization_ids:
            raise NotFoundError(f"Organization {organization_id} does not run campaign {campaign_id}")
        if len(campaign.organization_ids) == 1:
            raise ConflictError("campaign must retain at least one organization")

        owned = (await db.execute(
            select(Cause.id).where(Cause.id.in_(campaign.cause_ids), Cause.organization_id == organization_id)
        )).scalars().all()
        if owned:
            raise ConflictError(
                "Organization still has causes attached to this campaign",
                details={"cause_ids": sorted(owned)},
            )

        campaign.organization_links = [
            link for link in campaign.organization_links if link.organization_id != organization_id
        ]
        campaign.updated_at = utcnow()
        await db.commit()

        logger.info("Organization removed from campaign", campaign_id=campaign_id, organization_id=organization_id)
        return await CampaignService._after_write(campaign)

    @staticmethod
    async def refresh_total_targets(db: AsyncSession, cause_id: int) -> List[int]:
        """
        Recompute total_target_amount of every campaign that includes ``cause_id``.

        Runs inside the caller's transaction and does not commit; the caller
        commits and then invalidates the returned campaigns' cache entries.
        """
        campaign_ids = (await db.execute(
            select(CampaignCause.campaign_id).where(CampaignCause.cause_id == cause_id)
        )).scalars().all()

        for campaign_id in campaign_ids:
            cause_ids = (await db.execute(
                select(CampaignCause.cause_id).where(CampaignCause.campaign_id == campaign_id)
            )).scalars().all()
            await db.execute(
                update(Campaign)
                .where(Campaign.id == campaign_id)
                .values(total_target_amount=await CampaignService._total_target(db, cause_ids), updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
        return list(campaign_ids)

    # ------------------------------------------------------------------
    # Reads and update posts
    # ------------------------------------------------------------------

    @staticmethod
    async def get_campaign(db: AsyncSession, campaign_id: int) -> CampaignResponse:
        """Get a campaign by ID, from cache when possible"""
        cached = await redis_cache.get_campaign(campaign_id)
        if cached:
            return CampaignResponse.model_validate(cached)

        campaign = await CampaignService._load_campaign(db, campaign_id)
        response = CampaignResponse.model_validate(campaign)
        await redis_cache.set_campaign(campaign_id, response.model_dump(mode="json"))
        return response

    @staticmethod
    async def list_campaigns(db: AsyncSession,
                             status: Optional[CampaignStatus] = None,
                             organization_id: Optional[int] = None,
                             cause_id: Optional[int] = None,
                             skip: int = 0,
                             limit: int = 100) -> CampaignListResponse:
        """Campaigns, newest first, with optional status, organization and cause filters"""
        conditions = []
        if status is not None:
            conditions.append(Campaign.status == status)
        if organization_id is not None:
            conditions.append(Campaign.id.in_(
                select(CampaignOrganization.campaign_id).where(CampaignOrganization.organization_id == organization_id)
            ))
        if cause_id is not None:
            conditions.append(Campaign.id.in_(
                select(CampaignCause.campaign_id).where(CampaignCause.cause_id == cause_id)
            ))

        total = (await db.execute(select(func.count()).select_from(Campaign).where(*conditions))).scalar_one()
        result = await db.execute(
            select(Campaign)
            .where(*conditions)
            .order_by(Campaign.created_at.desc(), Campaign.id.desc())
            .offset(skip)
            .limit(limit)
        )
        campaigns = [CampaignResponse.model_validate(c) for c in result.scalars().all()]

        logger.info("Campaigns retrieved", count=len(campaigns), total=total)
        return CampaignListResponse(campaigns=campaigns, total=total)

    @staticmethod
    async def add_update_post(db: AsyncSession, caller: CallerIdentity, campaign_id: int,
                              post_data: CampaignUpdateRequest) -> CampaignUpdateResponse:
        """Publish a progress post and notify followers of the campaign"""
        campaign = await CampaignService._load_campaign(db, campaign_id)
        CampaignService._require_member(campaign, caller)

        post = CampaignUpdate(campaign_id=campaign_id, title=post_data.title, body=post_data.body, created_at=utcnow())
        db.add(post)
        await db.commit()

        logger.info("Campaign update posted", campaign_id=campaign_id, post_id=post.id)
        await event_publisher.publish_campaign_updated(
            campaign_id, campaign.organization_ids,
            {"title": campaign.title, "change": "update_post", "post_id": post.id, "post_title": post.title},
        )
        return CampaignUpdateResponse.model_validate(post)

    @staticmethod
    async def list_update_posts(db: AsyncSession, campaign_id: int) -> List[CampaignUpdateResponse]:
        await CampaignService._load_campaign(db, campaign_id)
        result = await db.execute(
            select(CampaignUpdate)
            .where(CampaignUpdate.campaign_id == campaign_id)
            .order_by(CampaignUpdate.created_at.desc(), CampaignUpdate.id.desc())
        )
        return [CampaignUpdateResponse.model_validate(post) for post in result.scalars().all()]
