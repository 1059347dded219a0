from pydantic import BaseModel, Field
from typing import List
from datetime import datetime


class CompanySweepResult(BaseModel):
    company_id: int
    expired_chats: int = 0
    reassigned_chats: int = 0
    distributed_chats: int = 0
    offline_attendants: int = 0
    failed_steps: List[str] = Field(default_factory=list)


class SweepReport(BaseModel):
    companies: int = 0
    expired_chats: int = 0
    reassigned_chats: int = 0
    distributed_chats: int = 0
    offline_attendants: int = 0
    failed_companies: List[int] = Field(default_factory=list)
    results: List[CompanySweepResult] = Field(default_factory=list)
    timestamp: datetime
