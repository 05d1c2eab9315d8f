import uuid

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base
from ..timeutils import utcnow
from .round import GUID


class CommitteeEvaluation(Base):
    __tablename__ = "committee_evaluations"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    round_id = Column(GUID(), ForeignKey("rounds.id"), nullable=False, index=True)
    committee_id = Column(GUID(), ForeignKey("users.id"), nullable=False, index=True)
    scores_json = Column(Text, nullable=False)  # JSON object: criterion -> score
    total_score = Column(Float, nullable=False)
    average_score = Column(Float, nullable=False)
    decision = Column(String(16), nullable=False)  # approve | revise | reject
    comments = Column(Text, nullable=False, default="")
    is_completed = Column(Boolean, nullable=False, default=True)
    review_cycle = Column(Integer, nullable=False, default=0)  # round submission evaluated
    submitted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    round = relationship("Round", back_populates="evaluations")
    committee = relationship("User")


class CommitteeAssignment(Base):
    """Which committee member is expected to evaluate which round."""

    __tablename__ = "committee_assignments"
    __table_args__ = (UniqueConstraint("round_id", "committee_id", name="uq_assignment_round_member"),)

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    round_id = Column(GUID(), ForeignKey("rounds.id"), nullable=False, index=True)
    committee_id = Column(GUID(), ForeignKey("users.id"), nullable=False, index=True)
    assigned_at = Column(DateTime, default=utcnow)
