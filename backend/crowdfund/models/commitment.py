import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from ..database import Base
from ..timeutils import utcnow
from .round import GUID


class Commitment(Base):
    __tablename__ = "commitments"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    round_id = Column(GUID(), ForeignKey("rounds.id"), nullable=False, index=True)
    investor_id = Column(GUID(), ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    type = Column(String(16), nullable=False, default="soft")  # soft | hard
    status = Column(String(16), nullable=False, default="pending")  # pending | approved | rejected | paid
    contract_signed = Column(Boolean, nullable=False, default=False)
    receipt_uploaded = Column(Boolean, nullable=False, default=False)
    receipt_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    round = relationship("Round", back_populates="commitments")
    investor = relationship("User")
