from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Dict, List, Optional

from fundraising.models.feedback import FeedbackStatus


class CreateFeedbackRequest(BaseModel):
    organization_id: int = Field(..., gt=0)
    campaign_id: Optional[int] = Field(None, gt=0)
    cause_id: Optional[int] = Field(None, gt=0)
    rating: int = Field(..., ge=1, le=5, description="Star rating from 1 to 5")
    comment: Optional[str] = Field(None, max_length=500)
    is_public: bool = True


class UpdateFeedbackStatusRequest(BaseModel):
    status: FeedbackStatus


class FeedbackResponse(BaseModel):
    id: int
    donor_id: int
    organization_id: int
    campaign_id: Optional[int] = None
    cause_id: Optional[int] = None
    rating: int
    comment: Optional[str] = None
    is_public: bool
    status: FeedbackStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FeedbackListResponse(BaseModel):
    feedback: List[FeedbackResponse]
    total: int


class FeedbackStatsResponse(BaseModel):
    organization_id: int
    total_feedback: int
    average_rating: float
    positive: float
    neutral: float
    negative: float
    rating_distribution: Dict[int, int]
