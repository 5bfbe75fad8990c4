from sqlalchemy import Column, Integer, String, Text, DateTime, Numeric, Boolean, ForeignKey, Enum
import enum

from fundraising.models.base import Base, utcnow


class DonationType(str, enum.Enum):
    """What the donor gives"""
    MONEY = "MONEY"
    BLOOD = "BLOOD"
    CLOTHES = "CLOTHES"
    FOOD = "FOOD"
    OTHER = "OTHER"


class DonationStatus(str, enum.Enum):
    """Donation status following the payment confirmation flow"""
    PENDING = "PENDING"  # Donation recorded, payment not yet confirmed
    CONFIRMED = "CONFIRMED"  # Payment captured / pledge accepted
    RECEIVED = "RECEIVED"  # Funds or goods received by the organization
    FAILED = "FAILED"  # Payment failed

    @property
    def is_counted(self) -> bool:
        return self in COUNTED_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


COUNTED_STATUSES = frozenset({DonationStatus.CONFIRMED, DonationStatus.RECEIVED})
TERMINAL_STATUSES = frozenset({DonationStatus.RECEIVED, DonationStatus.FAILED})

ALLOWED_TRANSITIONS = {
    DonationStatus.PENDING: frozenset({DonationStatus.CONFIRMED, DonationStatus.FAILED}),
    DonationStatus.CONFIRMED: frozenset({DonationStatus.RECEIVED}),
    DonationStatus.RECEIVED: frozenset(),
    DonationStatus.FAILED: frozenset(),
}


def can_transition(previous: DonationStatus, new: DonationStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[previous]


class Donation(Base):
    """Donation ledger entry"""
    __tablename__ = "donations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    donor_id = Column(Integer, ForeignKey("donors.id"), nullable=False, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    cause_id = Column(Integer, ForeignKey("causes.id"), nullable=False, index=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=True, index=True)
    type = Column(Enum(DonationType), nullable=False, default=DonationType.MONEY)
    amount = Column(Numeric(12, 2), nullable=True)  # Required for MONEY
    quantity = Column(Integer, nullable=True)  # In-kind donations
    description = Column(Text, nullable=True)
    status = Column(Enum(DonationStatus), nullable=False, default=DonationStatus.PENDING, index=True)
    # Set once, when the amount has been added to cause/campaign totals
    applied_to_totals = Column(Boolean, nullable=False, default=False)
    payment_reference = Column(String, nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Donation(id={self.id}, cause_id={self.cause_id}, amount={self.amount}, status='{self.status.value}')>"
