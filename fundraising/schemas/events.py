from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, Optional

from fundraising.models.base import utcnow


class PaymentEvent(BaseModel):
    """Message on the payment events topic"""
    event_type: str
    donation_id: int
    payment_reference: Optional[str] = None
    timestamp: Optional[datetime] = None


class NotificationEvent(BaseModel):
    """Message published for the notification pipeline"""
    event_type: str
    organization_id: Optional[int] = None
    campaign_id: Optional[int] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)
