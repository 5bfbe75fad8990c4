from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fundraising.core.auth import CallerIdentity, get_caller
from fundraising.database.database import get_db
from fundraising.models import DonationStatus
from fundraising.schemas.cause import CauseListResponse
from fundraising.schemas.donation import DonationListResponse
from fundraising.schemas.feedback import FeedbackListResponse, FeedbackStatsResponse
from fundraising.schemas.organization import (
    CreateDonorRequest,
    CreateOrganizationRequest,
    DonorResponse,
    OrganizationResponse,
)
from fundraising.services.cause import CauseService
from fundraising.services.donation import DonationService
from fundraising.services.feedback import FeedbackService
from fundraising.services.organization import OrganizationService

router = APIRouter(prefix="/organizations", tags=["organizations"])
donor_router = APIRouter(prefix="/donors", tags=["donors"])


@router.post("", response_model=OrganizationResponse, status_code=201)
async def create_organization(
    organization_data: CreateOrganizationRequest,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    return await OrganizationService.create_organization(db, caller, organization_data)


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(organization_id: int, db: AsyncSession = Depends(get_db)):
    return await OrganizationService.get_organization(db, organization_id)


@router.delete("/{organization_id}", status_code=204)
async def delete_organization(
    organization_id: int,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    await OrganizationService.delete_organization(db, caller, organization_id)
    return None


@router.get("/{organization_id}/causes", response_model=CauseListResponse)
async def list_organization_causes(
    organization_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    return await CauseService.list_organization_causes(db, organization_id, skip=skip, limit=limit)


@router.get("/{organization_id}/donations", response_model=DonationListResponse)
async def list_organization_donations(
    organization_id: int,
    status: Optional[DonationStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    return await DonationService.list_organization_donations(
        db, caller, organization_id, status=status, skip=skip, limit=limit
    )


@router.get("/{organization_id}/feedback", response_model=FeedbackListResponse)
async def list_organization_feedback(
    organization_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    return await FeedbackService.list_organization_feedback(db, caller, organization_id, skip=skip, limit=limit)


@router.get("/{organization_id}/feedback/stats", response_model=FeedbackStatsResponse)
async def feedback_stats(organization_id: int, db: AsyncSession = Depends(get_db)):
    return await FeedbackService.feedback_stats(db, organization_id)


@donor_router.post("", response_model=DonorResponse, status_code=201)
async def create_donor(donor_data: CreateDonorRequest, db: AsyncSession = Depends(get_db)):
    return await OrganizationService.create_donor(db, donor_data)


@donor_router.get("/{donor_id}", response_model=DonorResponse)
async def get_donor(donor_id: int, db: AsyncSession = Depends(get_db)):
    return await OrganizationService.get_donor(db, donor_id)
