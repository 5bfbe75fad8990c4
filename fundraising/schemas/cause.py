from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from decimal import Decimal
from typing import List, Optional


class CreateCauseRequest(BaseModel):
    """Request schema for creating a cause"""
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    target_amount: Decimal = Field(
        ..., gt=0, max_digits=12, decimal_places=2, description="Funding goal, must be positive"
    )
    image_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Clean water for Rangpur",
                "description": "Tube wells for five villages",
                "target_amount": "1000.00",
                "tags": ["water", "health"],
            }
        }
    )


class UpdateCauseRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    target_amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    image_url: Optional[str] = None
    tags: Optional[List[str]] = None


class CauseResponse(BaseModel):
    id: int
    organization_id: int
    title: str
    description: str
    target_amount: Decimal
    raised_amount: Decimal
    image_url: Optional[str] = None
    tags: List[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CauseListResponse(BaseModel):
    causes: List[CauseResponse]
    total: int
