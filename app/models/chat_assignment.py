from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Index, func
from sqlalchemy.orm import relationship
from app.core.database import Base
import datetime
import enum


class ChatAssignmentStatus(str, enum.Enum):
    """Chat assignment lifecycle"""
    UNASSIGNED = "unassigned"
    ASSIGNED = "assigned"
    ACTIVE = "active"  # Attendant has replied at least once
    RESOLVED = "resolved"
    EXPIRED = "expired"  # 24h customer window lapsed


class ChatAssignment(Base):
    __tablename__ = "chat_assignments"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(String, unique=True, index=True, nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    assigned_to = Column(Integer, nullable=True, index=True)  # Attendant user id

    status = Column(String, nullable=False, default=ChatAssignmentStatus.UNASSIGNED.value)
    assigned_at = Column(DateTime, nullable=True)
    last_customer_message_at = Column(DateTime, nullable=True)
    last_attendant_message_at = Column(DateTime, nullable=True)
    last_activity_at = Column(DateTime, nullable=False, default=datetime.datetime.utcnow)
    window_expires_at = Column(DateTime, nullable=True)  # last_customer_message_at + 24h

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_chat_assignment_company_status", "company_id", "status"),
    )

    company = relationship("Company", back_populates="chat_assignments")
