"""
Report shapes returned by the analytics endpoints.

Money is ``Decimal``, percentages are floats in 0..100.
"""
from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from fundraising.models.campaign import CampaignStatus
from fundraising.models.donation import DonationStatus, DonationType


class MonthlyTrendPoint(BaseModel):
    year: int
    month: int
    count: int
    total: Decimal


class AverageDonationPoint(BaseModel):
    year: int
    month: int
    average_amount: Decimal


class DonationTypeSlice(BaseModel):
    type: DonationType
    count: int
    total: Decimal


class TopCause(BaseModel):
    id: int
    title: str
    raised_amount: Decimal
    target_amount: Decimal
    progress: float


class RetentionReport(BaseModel):
    this_year_donor_count: int
    last_year_donor_count: int
    retained_donor_count: int
    retention_rate: float
    new_donor_count: int


class YearComparison(BaseModel):
    current_year: int
    current_year_total: Decimal
    previous_year: int
    previous_year_total: Decimal
    yoy_growth: float


class FeedbackSentiment(BaseModel):
    total_feedback: int
    average_rating: float
    positive: float
    neutral: float
    negative: float
    rating_distribution: Dict[int, int]


class OrganizationOverview(BaseModel):
    organization_id: int
    generated_at: datetime
    monthly_trend: List[MonthlyTrendPoint]
    donation_types: List[DonationTypeSlice]
    top_causes: List[TopCause]
    retention: RetentionReport
    average_donation_trend: List[AverageDonationPoint]
    year_comparison: YearComparison
    sentiment: FeedbackSentiment


class CauseDetails(BaseModel):
    id: int
    organization_id: int
    title: str
    target_amount: Decimal
    raised_amount: Decimal


class FundingProgress(BaseModel):
    raised_amount: Decimal
    target_amount: Decimal
    percentage: float


class CauseAnalytics(BaseModel):
    cause: CauseDetails
    generated_at: datetime
    monthly_trend: List[MonthlyTrendPoint]
    donation_types: List[DonationTypeSlice]
    funding_progress: FundingProgress


class DonorMetrics(BaseModel):
    total_donors: int
    new_donors_this_month: int
    repeat_donors: int
    repeat_donor_percentage: float
    average_donation_per_donor: Decimal


class TopDonor(BaseModel):
    donor_id: int
    first_name: str
    last_name: str
    email: str
    total_donated: Decimal
    donation_count: int
    first_donation: Optional[datetime] = None
    last_donation: Optional[datetime] = None


class DonorAnalytics(BaseModel):
    organization_id: int
    generated_at: datetime
    metrics: DonorMetrics
    top_donors: List[TopDonor]


class RecentDonation(BaseModel):
    id: int
    organization_id: int
    cause_id: int
    campaign_id: Optional[int] = None
    type: DonationType
    amount: Optional[Decimal] = None
    quantity: Optional[int] = None
    status: DonationStatus
    created_at: datetime


class RecentCampaign(BaseModel):
    id: int
    title: str
    status: CampaignStatus
    total_target_amount: Decimal
    total_raised_amount: Decimal
    total_supporters: int
    start_date: datetime
    end_date: datetime


class DonorDashboard(BaseModel):
    """Headline numbers of one donor's giving; counted donations only"""
    donor_id: int
    generated_at: datetime
    total_donated: Decimal
    donation_count: int
    last_month_total: Decimal
    previous_month_total: Decimal
    donation_growth: float
    donation_types_supported: int
    active_donation_types: int
    organizations_supported: int
    impact_score: int
    recent_donations: List[RecentDonation]


class DashboardDonationStats(BaseModel):
    total_amount: Decimal
    total_donations: int
    average_donation: Decimal


class DashboardCampaignStats(BaseModel):
    total_campaigns: int
    active_campaigns: int
    completed_campaigns: int
    cancelled_campaigns: int
    total_target_amount: Decimal
    total_raised_amount: Decimal
    average_supporters: float
    achievement_rate: float


class DashboardCauseStats(BaseModel):
    total_causes: int
    total_target_amount: Decimal
    total_raised_amount: Decimal
    achievement_rate: float


class OrganizationDashboard(BaseModel):
    organization_id: int
    generated_at: datetime
    donations: DashboardDonationStats
    campaigns: DashboardCampaignStats
    causes: DashboardCauseStats
    recent_donations: List[RecentDonation]
    recent_campaigns: List[RecentCampaign]
