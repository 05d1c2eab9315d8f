import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import Base
from ..timeutils import utcnow
from .round import GUID


class Startup(Base):
    __tablename__ = "startups"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("users.id"), nullable=False, unique=True)
    company_name = Column(String(255), nullable=False)
    sector = Column(String(255), nullable=False, default="")
    tax_number = Column(String(32), nullable=True)
    description = Column(Text, nullable=False, default="")
    website = Column(String(1024), nullable=True)
    founding_date = Column(String(32), nullable=True)  # ISO date as entered
    created_at = Column(DateTime, default=utcnow)

    owner = relationship("User", back_populates="startup")
    rounds = relationship("Round", back_populates="startup", lazy="selectin")
    business_plans = relationship("BusinessPlan", back_populates="startup", lazy="selectin")


class BusinessPlan(Base):
    __tablename__ = "business_plans"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    startup_id = Column(GUID(), ForeignKey("startups.id"), nullable=False, index=True)
    title = Column(String(512), nullable=False)
    description = Column(Text, nullable=False, default="")
    current_version = Column(Integer, nullable=False, default=1)
    status = Column(String(32), nullable=False, default="draft")  # draft | submitted | approved | rejected
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    startup = relationship("Startup", back_populates="business_plans")
