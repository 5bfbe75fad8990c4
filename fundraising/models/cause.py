from sqlalchemy import Column, Integer, String, Text, DateTime, Numeric, ForeignKey, JSON

from fundraising.models.base import Base, utcnow


class Cause(Base):
    """Fundraising cause owned by exactly one organization"""
    __tablename__ = "causes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    title = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=False)
    target_amount = Column(Numeric(12, 2), nullable=False)
    # Only the totals maintainer writes this column
    raised_amount = Column(Numeric(12, 2), nullable=False, default=0)
    image_url = Column(String, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Cause(id={self.id}, organization_id={self.organization_id}, raised={self.raised_amount}/{self.target_amount})>"
