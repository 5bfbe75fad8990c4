from .base import Base, as_naive_utc, utcnow
from .organization import Organization, Donor
from .cause import Cause
from .campaign import Campaign, CampaignCause, CampaignOrganization, CampaignStatus, CampaignUpdate
from .donation import (
    Donation,
    DonationStatus,
    DonationType,
    COUNTED_STATUSES,
    TERMINAL_STATUSES,
    can_transition,
)
from .feedback import Feedback, FeedbackStatus

__all__ = [
    "Base",
    "utcnow",
    "as_naive_utc",
    "Organization",
    "Donor",
    "Cause",
    "Campaign",
    "CampaignCause",
    "CampaignOrganization",
    "CampaignStatus",
    "CampaignUpdate",
    "Donation",
    "DonationStatus",
    "DonationType",
    "COUNTED_STATUSES",
    "TERMINAL_STATUSES",
    "can_transition",
    "Feedback",
    "FeedbackStatus",
]
