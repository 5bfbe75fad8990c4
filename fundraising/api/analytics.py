from fastapi import APIRouter, Depends

from fundraising.api.deps import get_analytics_service
from fundraising.core.auth import CallerIdentity, get_caller
from fundraising.schemas.analytics import (
    CauseAnalytics,
    DonorAnalytics,
    DonorDashboard,
    OrganizationDashboard,
    OrganizationOverview,
)
from fundraising.services.analytics import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/organizations/{organization_id}/overview", response_model=OrganizationOverview)
async def organization_overview(
    organization_id: int,
    caller: CallerIdentity = Depends(get_caller),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    """Trends, retention, top causes and sentiment for one organization"""
    return await analytics.organization_overview(caller, organization_id)


@router.get("/causes/{cause_id}", response_model=CauseAnalytics)
async def cause_analytics(
    cause_id: int,
    caller: CallerIdentity = Depends(get_caller),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    return await analytics.cause_analytics(caller, cause_id)


@router.get("/organizations/{organization_id}/donors", response_model=DonorAnalytics)
async def donor_analytics(
    organization_id: int,
    caller: CallerIdentity = Depends(get_caller),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    return await analytics.donor_analytics(caller, organization_id)


@router.get("/donors/me/dashboard", response_model=DonorDashboard)
async def donor_dashboard(
    caller: CallerIdentity = Depends(get_caller),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    """Giving summary of the calling donor"""
    return await analytics.donor_dashboard(caller)


@router.get("/organizations/{organization_id}/dashboard", response_model=OrganizationDashboard)
async def organization_dashboard(
    organization_id: int,
    caller: CallerIdentity = Depends(get_caller),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    """Dashboard totals and recent activity for one organization"""
    return await analytics.organization_dashboard(caller, organization_id)
