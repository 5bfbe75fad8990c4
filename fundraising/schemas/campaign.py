from pydantic import BaseModel, Field, ConfigDict, field_validator
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fundraising.models.base import as_naive_utc
from fundraising.models.campaign import CampaignStatus
from fundraising.models.donation import DonationType


class CreateCampaignRequest(BaseModel):
    """Request schema for creating a campaign"""
    title: str = Field(..., min_length=1, description="Campaign title is required")
    description: str = Field(..., min_length=1, description="Campaign description is required")
    cause_ids: List[int] = Field(..., min_length=1, description="At least one cause is required")
    accepted_donation_types: List[DonationType] = Field(..., min_length=1)
    start_date: datetime = Field(..., description="Campaign start date")
    end_date: datetime = Field(..., description="Campaign end date")
    status: CampaignStatus = Field(default=CampaignStatus.DRAFT)
    donation_type: DonationType = Field(..., description="Primary donation type")
    target_amount: Decimal = Field(
        ..., ge=0, max_digits=12, decimal_places=2, description="Fundraising goal for money donations"
    )
    target_quantity: int = Field(..., ge=0, description="Goal for in-kind donations")
    location: str = Field(..., min_length=1)
    requirements: List[Dict[str, Any]] = Field(default_factory=list)
    impact: str = Field(..., min_length=1)
    image_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value):
        return as_naive_utc(value)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Winter Relief 2026",
                "description": "Blankets and meals for the winter months",
                "cause_ids": [1, 2],
                "accepted_donation_types": ["MONEY", "CLOTHES"],
                "start_date": "2026-11-01T00:00:00Z",
                "end_date": "2027-02-28T23:59:59Z",
                "donation_type": "MONEY",
                "target_amount": "25000.00",
                "target_quantity": 500,
                "location": "Dhaka",
                "requirements": [{"item": "blanket", "quantity": 300}],
                "impact": "Keeps 300 families warm",
            }
        }
    )


class UpdateCampaignRequest(BaseModel):
    """Request schema for updating a campaign; omitted fields are left alone"""
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    cause_ids: Optional[List[int]] = Field(None, min_length=1)
    accepted_donation_types: Optional[List[DonationType]] = Field(None, min_length=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[CampaignStatus] = None
    donation_type: Optional[DonationType] = None
    target_amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    target_quantity: Optional[int] = Field(None, ge=0)
    location: Optional[str] = Field(None, min_length=1)
    requirements: Optional[List[Dict[str, Any]]] = None
    impact: Optional[str] = Field(None, min_length=1)
    image_url: Optional[str] = None
    tags: Optional[List[str]] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value):
        return as_naive_utc(value)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Winter Relief 2026 Extended",
                "end_date": "2027-03-31T23:59:59Z",
            }
        }
    )


class AddCauseRequest(BaseModel):
    cause_id: int = Field(..., gt=0)


class AddOrganizationRequest(BaseModel):
    organization_id: int = Field(..., gt=0)


class CampaignResponse(BaseModel):
    """Response schema for campaign data"""
    id: int
    title: str
    description: str
    cause_ids: List[int]
    organization_ids: List[int]
    accepted_donation_types: List[DonationType]
    start_date: datetime
    end_date: datetime
    status: CampaignStatus
    donation_type: DonationType
    target_amount: Decimal
    target_quantity: int
    location: str
    requirements: List[Dict[str, Any]]
    impact: str
    image_url: Optional[str] = None
    tags: List[str]
    total_target_amount: Decimal
    total_raised_amount: Decimal
    total_supporters: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)  # Allows conversion from SQLAlchemy models


class CampaignListResponse(BaseModel):
    """Response schema for list of campaigns"""
    campaigns: List[CampaignResponse]
    total: int


class CampaignUpdateRequest(BaseModel):
    """Progress post for a campaign"""
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1)


class CampaignUpdateResponse(BaseModel):
    id: int
    campaign_id: int
    title: str
    body: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
