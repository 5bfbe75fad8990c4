from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fundraising.api.deps import get_totals_maintainer
from fundraising.core.auth import CallerIdentity, get_caller, require_admin
from fundraising.database.database import get_db
from fundraising.schemas.donation import (
    CreateDonationRequest,
    DonationListResponse,
    DonationResponse,
    DonationStatusChangeRequest,
    TransitionResponse,
)
from fundraising.services.donation import DonationService
from fundraising.services.totals import TotalsMaintainer

router = APIRouter(prefix="/donations", tags=["donations"])
internal_router = APIRouter(prefix="/internal/donations", tags=["internal"])


@router.post("", response_model=DonationResponse, status_code=201)
async def create_donation(
    donation_data: CreateDonationRequest,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Record a pending donation"""
    return await DonationService.create_donation(db, caller, donation_data)


@router.get("/me", response_model=DonationListResponse)
async def list_my_donations(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    return await DonationService.list_donor_donations(db, caller, skip=skip, limit=limit)


@router.get("/{donation_id}", response_model=DonationResponse)
async def get_donation(
    donation_id: int,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    return await DonationService.get_donation(db, caller, donation_id)


@internal_router.post("/{donation_id}/status", response_model=TransitionResponse)
async def change_donation_status(
    donation_id: int,
    change: DonationStatusChangeRequest,
    caller: CallerIdentity = Depends(get_caller),
    maintainer: TotalsMaintainer = Depends(get_totals_maintainer)
):
    """Same entry point as the payment events consumer, for staff and replays"""
    require_admin(caller)
    outcome = await maintainer.on_donation_status_changed(donation_id, change.previous_status, change.new_status)
    return TransitionResponse(
        donation_id=outcome.donation_id,
        status=outcome.status,
        applied=outcome.applied,
        duplicate=outcome.duplicate,
    )
