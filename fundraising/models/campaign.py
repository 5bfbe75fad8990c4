import enum

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Numeric, ForeignKey, JSON, Enum, UniqueConstraint
)
from sqlalchemy.orm import relationship

from fundraising.models.base import Base, utcnow


class CampaignStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CampaignCause(Base):
    """Ordered cause membership of a campaign"""
    __tablename__ = "campaign_causes"
    __table_args__ = (UniqueConstraint("campaign_id", "cause_id", name="uq_campaign_cause"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    cause_id = Column(Integer, ForeignKey("causes.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)


class CampaignOrganization(Base):
    """Organizations sharing a campaign"""
    __tablename__ = "campaign_organizations"
    __table_args__ = (UniqueConstraint("campaign_id", "organization_id", name="uq_campaign_organization"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)


class Campaign(Base):
    """Campaign grouping causes from one or more organizations"""
    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    status = Column(Enum(CampaignStatus), nullable=False, default=CampaignStatus.DRAFT, index=True)
    accepted_donation_types = Column(JSON, nullable=False, default=list)
    donation_type = Column(String, nullable=False)
    target_amount = Column(Numeric(12, 2), nullable=False)
    target_quantity = Column(Integer, nullable=False)
    location = Column(String, nullable=False)
    requirements = Column(JSON, nullable=False, default=list)
    impact = Column(Text, nullable=False)
    image_url = Column(String, nullable=True)
    tags = Column(JSON, nullable=False, default=list)

    # Derived totals
    total_target_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_raised_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_supporters = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    cause_links = relationship(
        "CampaignCause",
        order_by="CampaignCause.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    organization_links = relationship(
        "CampaignOrganization",
        order_by="CampaignOrganization.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def cause_ids(self):
        return [link.cause_id for link in self.cause_links]

    @property
    def organization_ids(self):
        return [link.organization_id for link in self.organization_links]

    def __repr__(self):
        return f"<Campaign(id={self.id}, title='{self.title}', status={self.status})>"


class CampaignUpdate(Base):
    """Progress post published on a campaign"""
    __tablename__ = "campaign_updates"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
