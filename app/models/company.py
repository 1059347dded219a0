
from sqlalchemy import Boolean, Column, Integer, String
from sqlalchemy.orm import relationship
from app.core.database import Base
import enum


class DistributionStrategy(str, enum.Enum):
    """Tie-break policy used when picking an attendant"""
    LEAST_LOADED = "least_loaded"
    ROUND_ROBIN = "round_robin"


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default='true')  # Only active companies are swept
    distribution_strategy = Column(String, nullable=False, default=DistributionStrategy.LEAST_LOADED.value, server_default='least_loaded')

    attendant_statuses = relationship("AttendantStatus", back_populates="company")
    chat_assignments = relationship("ChatAssignment", back_populates="company")
