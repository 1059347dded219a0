from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

from app.models.attendant_status import AttendantStatusType


class AttendantStatusUpdate(BaseModel):
    user_id: int
    status: Optional[AttendantStatusType] = None
    max_chats: Optional[int] = Field(default=None, ge=0)


class AttendantHeartbeat(BaseModel):
    user_id: int


class AttendantStatus(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    company_id: int
    status: AttendantStatusType
    active_chats: int
    max_chats: int
    last_activity_at: datetime
    last_assigned_at: Optional[datetime] = None
