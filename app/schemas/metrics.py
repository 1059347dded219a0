from pydantic import BaseModel
from typing import Dict, List


class AttendantLoad(BaseModel):
    user_id: int
    status: str
    active_chats: int
    max_chats: int
    utilization: float  # percentage


class AttendantMetrics(BaseModel):
    total: int
    by_status: Dict[str, int]
    average_load: float  # percentage
    load_distribution: List[AttendantLoad]


class ChatMetrics(BaseModel):
    total: int
    by_status: Dict[str, int]
    queue: int


class DistributionMetrics(BaseModel):
    company_id: int
    attendants: AttendantMetrics
    chats: ChatMetrics
