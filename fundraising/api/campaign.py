from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from fundraising.core.auth import CallerIdentity, get_caller
from fundraising.database.database import get_db
from fundraising.models import CampaignStatus
from fundraising.schemas.campaign import (
    AddCauseRequest,
    AddOrganizationRequest,
    CampaignListResponse,
    CampaignResponse,
    CampaignUpdateRequest,
    CampaignUpdateResponse,
    CreateCampaignRequest,
    UpdateCampaignRequest,
)
from fundraising.services.campaign import CampaignService

router = APIRouter(prefix="/campaigns", tags=["campaigns"])
logger = structlog.get_logger(__name__)


@router.post("", response_model=CampaignResponse, status_code=201)
async def create_campaign(
    campaign_data: CreateCampaignRequest,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Create a new campaign"""
    return await CampaignService.create_campaign(db, caller, campaign_data)


@router.get("", response_model=CampaignListResponse)
async def list_campaigns(
    status: Optional[CampaignStatus] = Query(None, description="Filter by status"),
    organization_id: Optional[int] = Query(None, gt=0),
    cause_id: Optional[int] = Query(None, gt=0),
    skip: int = Query(0, ge=0, description="Number of campaigns to skip"),
    limit: int = Query(100, ge=1, le=100, description="Number of campaigns to return"),
    db: AsyncSession = Depends(get_db)
):
    """List campaigns with filters and pagination"""
    return await CampaignService.list_campaigns(
        db, status=status, organization_id=organization_id, cause_id=cause_id, skip=skip, limit=limit
    )


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(campaign_id: int, db: AsyncSession = Depends(get_db)):
    """Get a campaign by ID"""
    return await CampaignService.get_campaign(db, campaign_id)


@router.put("/{campaign_id}", response_model=CampaignResponse)
async def update_campaign(
    campaign_id: int,
    campaign_data: UpdateCampaignRequest,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Update an existing campaign"""
    return await CampaignService.update_campaign(db, caller, campaign_id, campaign_data)


@router.delete("/{campaign_id}", status_code=204)
async def delete_campaign(
    campaign_id: int,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Delete a campaign without donations"""
    await CampaignService.delete_campaign(db, caller, campaign_id)
    return None


@router.post("/{campaign_id}/causes", response_model=CampaignResponse)
async def add_cause(
    campaign_id: int,
    request: AddCauseRequest,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    return await CampaignService.add_cause(db, caller, campaign_id, request.cause_id)


@router.delete("/{campaign_id}/causes/{cause_id}", response_model=CampaignResponse)
async def remove_cause(
    campaign_id: int,
    cause_id: int,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    return await CampaignService.remove_cause(db, caller, campaign_id, cause_id)


@router.post("/{campaign_id}/organizations", response_model=CampaignResponse)
async def add_organization(
    campaign_id: int,
    request: AddOrganizationRequest,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    return await CampaignService.add_organization(db, caller, campaign_id, request.organization_id)


@router.delete("/{campaign_id}/organizations/{organization_id}", response_model=CampaignResponse)
async def remove_organization(
    campaign_id: int,
    organization_id: int,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    return await CampaignService.remove_organization(db, caller, campaign_id, organization_id)


@router.post("/{campaign_id}/updates", response_model=CampaignUpdateResponse, status_code=201)
async def add_update_post(
    campaign_id: int,
    post_data: CampaignUpdateRequest,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Publish a progress post on a campaign"""
    return await CampaignService.add_update_post(db, caller, campaign_id, post_data)


@router.get("/{campaign_id}/updates", response_model=List[CampaignUpdateResponse])
async def list_update_posts(campaign_id: int, db: AsyncSession = Depends(get_db)):
    return await CampaignService.list_update_posts(db, campaign_id)
