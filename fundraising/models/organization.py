from sqlalchemy import Column, Integer, String, DateTime, Boolean

from fundraising.models.base import Base, utcnow


class Organization(Base):
    """Organization that owns causes and runs campaigns"""
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String, nullable=False, index=True)
    contact_email = Column(String, nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Organization(id={self.id}, name='{self.name}', is_verified={self.is_verified})>"


class Donor(Base):
    """Donor identity joined into donor analytics"""
    __tablename__ = "donors"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Donor(id={self.id}, email='{self.email}')>"
