from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from fundraising.analytics.sentiment import sentiment_from_distribution
from fundraising.core.auth import CallerIdentity, Role, require_admin
from fundraising.core.errors import AuthorizationError, NotFoundError, ValidationError
from fundraising.kafka.producer import event_publisher
from fundraising.models import Campaign, Cause, Donor, Feedback, FeedbackStatus, Organization, utcnow
from fundraising.schemas.feedback import (
    CreateFeedbackRequest,
    FeedbackListResponse,
    FeedbackResponse,
    FeedbackStatsResponse,
    UpdateFeedbackStatusRequest,
)

logger = structlog.get_logger(__name__)


class FeedbackService:
    """Donor feedback on organizations"""

    @staticmethod
    async def create_feedback(db: AsyncSession, caller: CallerIdentity,
                              feedback_data: CreateFeedbackRequest) -> FeedbackResponse:
        if caller.role != Role.DONOR:
            raise AuthorizationError("Only donors can leave feedback")
        if await db.get(Donor, caller.user_id) is None:
            raise NotFoundError(f"Donor {caller.user_id} not found")
        organization_id = feedback_data.organization_id
        if await db.get(Organization, organization_id) is None:
            raise NotFoundError(f"Organization {organization_id} not found")

        if feedback_data.cause_id is not None:
            cause = await db.get(Cause, feedback_data.cause_id)
            if cause is None:
                raise NotFoundError(f"Cause {feedback_data.cause_id} not found")
            if cause.organization_id != organization_id:
                raise ValidationError(
                    "Cause does not belong to the given organization",
                    details={"cause_id": cause.id, "organization_id": organization_id},
                )

        if feedback_data.campaign_id is not None:
            campaign = await db.get(Campaign, feedback_data.campaign_id)
            if campaign is None:
                raise NotFoundError(f"Campaign {feedback_data.campaign_id} not found")
            if organization_id not in campaign.organization_ids:
                raise ValidationError(
                    "Campaign is not run by the given organization",
                    details={"campaign_id": campaign.id, "organization_id": organization_id},
                )

        now = utcnow()
        feedback = Feedback(
            donor_id=caller.user_id,
            organization_id=feedback_data.organization_id,
            campaign_id=feedback_data.campaign_id,
            cause_id=feedback_data.cause_id,
            rating=feedback_data.rating,
            comment=feedback_data.comment,
            is_public=feedback_data.is_public,
            status=FeedbackStatus.PUBLISHED,
            created_at=now,
            updated_at=now,
        )
        db.add(feedback)
        await db.commit()

        response = FeedbackResponse.model_validate(feedback)
        logger.info("Feedback received", feedback_id=feedback.id, organization_id=feedback.organization_id,
                    rating=feedback.rating)
        await event_publisher.publish_feedback_received(response.model_dump(mode="json"))
        return response

    @staticmethod
    async def list_organization_feedback(db: AsyncSession, caller: CallerIdentity, organization_id: int,
                                         skip: int = 0, limit: int = 100) -> FeedbackListResponse:
        """Admins see everything; everyone else only public, published feedback"""
        conditions = [Feedback.organization_id == organization_id]
        if not caller.is_admin:
            conditions.append(Feedback.is_public.is_(True))
            conditions.append(Feedback.status == FeedbackStatus.PUBLISHED)

        total = (await db.execute(select(func.count()).select_from(Feedback).where(*conditions))).scalar_one()
        result = await db.execute(
            select(Feedback)
            .where(*conditions)
            .order_by(Feedback.created_at.desc(), Feedback.id.desc())
            .offset(skip)
            .limit(limit)
        )
        feedback = [FeedbackResponse.model_validate(f) for f in result.scalars().all()]
        return FeedbackListResponse(feedback=feedback, total=total)

    @staticmethod
    async def feedback_stats(db: AsyncSession, organization_id: int) -> FeedbackStatsResponse:
        """Rating distribution and sentiment over all of an organization's feedback"""
        rows = (await db.execute(
            select(Feedback.rating, func.count())
            .where(Feedback.organization_id == organization_id)
            .group_by(Feedback.rating)
        )).all()
        summary = sentiment_from_distribution({rating: count for rating, count in rows})

        return FeedbackStatsResponse(
            organization_id=organization_id,
            total_feedback=summary.total_feedback,
            average_rating=summary.average_rating,
            positive=summary.positive,
            neutral=summary.neutral,
            negative=summary.negative,
            rating_distribution=summary.rating_distribution,
        )

    @staticmethod
    async def update_feedback_status(db: AsyncSession, caller: CallerIdentity, feedback_id: int,
                                     status_data: UpdateFeedbackStatusRequest) -> FeedbackResponse:
        require_admin(caller)

        feedback = await db.get(Feedback, feedback_id)
        if feedback is None:
            raise NotFoundError(f"Feedback {feedback_id} not found")

        feedback.status = status_data.status
        feedback.updated_at = utcnow()
        await db.commit()

        logger.info("Feedback status changed", feedback_id=feedback_id, status=status_data.status.value)
        return FeedbackResponse.model_validate(feedback)
