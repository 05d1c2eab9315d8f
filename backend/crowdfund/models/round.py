import uuid

from sqlalchemy import BigInteger, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator, CHAR


from ..database import Base
from ..timeutils import utcnow


class GUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses CHAR(36) to store UUIDs as strings, compatible with all backends
    including SQLite.
    """

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            return uuid.UUID(value)
        return value


class Round(Base):
    __tablename__ = "rounds"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    startup_id = Column(GUID(), ForeignKey("startups.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=False, default="")

    # Money is stored as integers in the platform's base currency unit.
    target_amount = Column(BigInteger, nullable=False)
    min_investment = Column(BigInteger, nullable=False)
    max_investment = Column(BigInteger, nullable=False)
    valuation_pre = Column(BigInteger, nullable=False, default=0)
    valuation_post = Column(BigInteger, nullable=False, default=0)
    platform_fee_percentage = Column(Float, nullable=False, default=0.0)

    # Derived from paid commitments; only written by the totals recompute.
    current_amount = Column(BigInteger, nullable=False, default=0)
    investor_count = Column(BigInteger, nullable=False, default=0)

    status = Column(String(32), nullable=False, default="draft", index=True)
    review_cycle = Column(Integer, nullable=False, default=0)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    business_plan_id = Column(GUID(), ForeignKey("business_plans.id"), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    startup = relationship("Startup", back_populates="rounds")
    business_plan = relationship("BusinessPlan")
    commitments = relationship("Commitment", back_populates="round", lazy="selectin")
    evaluations = relationship("CommitteeEvaluation", back_populates="round", lazy="selectin")
