import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship

from ..database import Base
from ..timeutils import utcnow
from .round import GUID


class User(Base):
    __tablename__ = "users"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=False, default="")
    last_name = Column(String, nullable=False, default="")
    role = Column(String(32), nullable=False, index=True)  # admin | investor | startup | committee | super_admin
    phone = Column(String(32), nullable=True)
    hashed_password = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Investor-only profile fields
    investor_type = Column(String(32), nullable=True)  # individual | corporate
    investment_capacity = Column(BigInteger, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    startup = relationship("Startup", back_populates="owner", uselist=False, lazy="selectin")
