from .campaign import (
    CreateCampaignRequest,
    UpdateCampaignRequest,
    AddCauseRequest,
    AddOrganizationRequest,
    CampaignResponse,
    CampaignListResponse,
    CampaignUpdateRequest,
    CampaignUpdateResponse,
)
from .cause import CreateCauseRequest, UpdateCauseRequest, CauseResponse, CauseListResponse
from .organization import CreateOrganizationRequest, OrganizationResponse, CreateDonorRequest, DonorResponse
from .donation import (
    CreateDonationRequest,
    DonationStatusChangeRequest,
    DonationResponse,
    DonationListResponse,
    TransitionResponse,
)
from .feedback import (
    CreateFeedbackRequest,
    UpdateFeedbackStatusRequest,
    FeedbackResponse,
    FeedbackListResponse,
    FeedbackStatsResponse,
)
from .events import PaymentEvent, NotificationEvent

__all__ = [
    "CreateCampaignRequest",
    "UpdateCampaignRequest",
    "AddCauseRequest",
    "AddOrganizationRequest",
    "CampaignResponse",
    "CampaignListResponse",
    "CampaignUpdateRequest",
    "CampaignUpdateResponse",
    "CreateCauseRequest",
    "UpdateCauseRequest",
    "CauseResponse",
    "CauseListResponse",
    "CreateOrganizationRequest",
    "OrganizationResponse",
    "CreateDonorRequest",
    "DonorResponse",
    "CreateDonationRequest",
    "DonationStatusChangeRequest",
    "DonationResponse",
    "DonationListResponse",
    "TransitionResponse",
    "CreateFeedbackRequest",
    "UpdateFeedbackStatusRequest",
    "FeedbackResponse",
    "FeedbackListResponse",
    "FeedbackStatsResponse",
    "PaymentEvent",
    "NotificationEvent",
]
