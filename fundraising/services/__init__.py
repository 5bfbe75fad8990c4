from .analytics import AnalyticsService
from .campaign import CampaignService
from .cause import CauseService
from .donation import DonationService
from .feedback import FeedbackService
from .organization import OrganizationService
from .totals import TotalsMaintainer, TransitionOutcome

__all__ = [
    "AnalyticsService",
    "CampaignService",
    "CauseService",
    "DonationService",
    "FeedbackService",
    "OrganizationService",
    "TotalsMaintainer",
    "TransitionOutcome",
]
