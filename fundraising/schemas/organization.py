from pydantic import BaseModel, Field, ConfigDict, EmailStr
from datetime import datetime
from typing import Optional


class CreateOrganizationRequest(BaseModel):
    name: str = Field(..., min_length=1)
    contact_email: Optional[EmailStr] = None
    is_verified: bool = False


class OrganizationResponse(BaseModel):
    id: int
    name: str
    contact_email: Optional[str] = None
    is_verified: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreateDonorRequest(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr


class DonorResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
