from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

from app.models.chat_assignment import ChatAssignmentStatus


class InboundMessage(BaseModel):
    chat_id: str
    timestamp: Optional[datetime] = None


class ChatActivity(BaseModel):
    from_customer: bool = False
    timestamp: Optional[datetime] = None


class ChatAssignment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    chat_id: str
    company_id: int
    assigned_to: Optional[int] = None
    status: ChatAssignmentStatus
    assigned_at: Optional[datetime] = None
    last_customer_message_at: Optional[datetime] = None
    last_attendant_message_at: Optional[datetime] = None
    last_activity_at: datetime
    window_expires_at: Optional[datetime] = None


class InboundResult(BaseModel):
    assignment: ChatAssignment
    assigned_to: Optional[int] = None
    queued: bool


class WindowCheck(BaseModel):
    chat_id: str
    is_valid: bool
    expired: bool
    window_expires_at: Optional[datetime] = None
    message: str
