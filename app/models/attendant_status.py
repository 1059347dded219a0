from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, UniqueConstraint, Index, func
from sqlalchemy.orm import relationship
from app.core.config import settings
from app.core.database import Base
import datetime
import enum


class AttendantStatusType(str, enum.Enum):
    """Attendant availability"""
    AVAILABLE = "available"
    BUSY = "busy"
    AWAY = "away"
    OFFLINE = "offline"


class AttendantStatus(Base):
    __tablename__ = "attendant_statuses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)

    status = Column(String, nullable=False, default=AttendantStatusType.OFFLINE.value)  # available, busy, away, offline
    active_chats = Column(Integer, nullable=False, default=0, server_default='0')  # Only mutated with atomic increments
    max_chats = Column(Integer, nullable=False, default=settings.DEFAULT_MAX_CHATS, server_default=str(settings.DEFAULT_MAX_CHATS))
    last_activity_at = Column(DateTime, nullable=False, default=datetime.datetime.utcnow)
    last_assigned_at = Column(DateTime, nullable=True)  # Round-robin rotation pointer

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "company_id", name="uq_attendant_status_user_company"),
        Index("idx_attendant_status_company_status", "company_id", "status"),
    )

    company = relationship("Company", back_populates="attendant_statuses")

    @property
    def load_ratio(self) -> float:
        if not self.max_chats or self.max_chats <= 0:
            return 0.0
        return self.active_chats / self.max_chats
