from sqlalchemy import Column, Integer, Text, DateTime, Boolean, ForeignKey, Enum
import enum

from fundraising.models.base import Base, utcnow


class FeedbackStatus(str, enum.Enum):
    PENDING = "pending"
    PUBLISHED = "published"
    HIDDEN = "hidden"


class Feedback(Base):
    """Donor rating of an organization, optionally about a campaign or cause"""
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    donor_id = Column(Integer, ForeignKey("donors.id"), nullable=False, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=True)
    cause_id = Column(Integer, ForeignKey("causes.id"), nullable=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    is_public = Column(Boolean, nullable=False, default=True)
    status = Column(Enum(FeedbackStatus), nullable=False, default=FeedbackStatus.PENDING)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Feedback(id={self.id}, organization_id={self.organization_id}, rating={self.rating})>"
