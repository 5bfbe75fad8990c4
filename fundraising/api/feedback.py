from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fundraising.core.auth import CallerIdentity, get_caller
from fundraising.database.database import get_db
from fundraising.schemas.feedback import CreateFeedbackRequest, FeedbackResponse, UpdateFeedbackStatusRequest
from fundraising.services.feedback import FeedbackService

router = APIRouter(prefix="/feedback", tags=["feedback"])


@router.post("", response_model=FeedbackResponse, status_code=201)
async def create_feedback(
    feedback_data: CreateFeedbackRequest,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    return await FeedbackService.create_feedback(db, caller, feedback_data)


@router.patch("/{feedback_id}/status", response_model=FeedbackResponse)
async def update_feedback_status(
    feedback_id: int,
    status_data: UpdateFeedbackStatusRequest,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Moderate feedback (admin only)"""
    return await FeedbackService.update_feedback_status(db, caller, feedback_id, status_data)
