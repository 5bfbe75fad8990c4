from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fundraising.models.donation import DonationStatus, DonationType


class CreateDonationRequest(BaseModel):
    """Request schema for recording a donation"""
    organization_id: int = Field(..., gt=0)
    cause_id: int = Field(..., gt=0)
    campaign_id: Optional[int] = Field(None, gt=0)
    type: DonationType = Field(default=DonationType.MONEY)
    amount: Optional[Decimal] = Field(
        None, gt=0, max_digits=12, decimal_places=2, description="Required for MONEY donations"
    )
    quantity: Optional[int] = Field(None, gt=0)
    description: Optional[str] = None
    payment_reference: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "organization_id": 1,
                "cause_id": 3,
                "campaign_id": 2,
                "type": "MONEY",
                "amount": "400.00",
            }
        }
    )


class DonationStatusChangeRequest(BaseModel):
    """Status transition as delivered by the payment flow"""
    previous_status: DonationStatus
    new_status: DonationStatus


class DonationResponse(BaseModel):
    id: int
    donor_id: int
    organization_id: int
    cause_id: int
    campaign_id: Optional[int] = None
    type: DonationType
    amount: Optional[Decimal] = None
    quantity: Optional[int] = None
    description: Optional[str] = None
    status: DonationStatus
    applied_to_totals: bool
    payment_reference: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DonationListResponse(BaseModel):
    donations: List[DonationResponse]
    total: int


class TransitionResponse(BaseModel):
    donation_id: int
    status: DonationStatus
    applied: bool
    duplicate: bool
