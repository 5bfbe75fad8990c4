from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fundraising.core.auth import CallerIdentity, get_caller
from fundraising.database.database import get_db
from fundraising.schemas.cause import CauseResponse, CreateCauseRequest, UpdateCauseRequest
from fundraising.services.cause import CauseService

router = APIRouter(prefix="/causes", tags=["causes"])


@router.post("", response_model=CauseResponse, status_code=201)
async def create_cause(
    cause_data: CreateCauseRequest,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Create a cause for the caller's organization"""
    return await CauseService.create_cause(db, caller, cause_data)


@router.get("/{cause_id}", response_model=CauseResponse)
async def get_cause(cause_id: int, db: AsyncSession = Depends(get_db)):
    return await CauseService.get_cause(db, cause_id)


@router.put("/{cause_id}", response_model=CauseResponse)
async def update_cause(
    cause_id: int,
    cause_data: UpdateCauseRequest,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    return await CauseService.update_cause(db, caller, cause_id, cause_data)


@router.delete("/{cause_id}", status_code=204)
async def delete_cause(
    cause_id: int,
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    await CauseService.delete_cause(db, caller, cause_id)
    return None
