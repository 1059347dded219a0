"""
Customer messaging window and staleness policy.

WhatsApp only allows free-form business replies within 24 hours of the
customer's last message; past that, callers must fall back to a template
message. Staleness is a separate concern: a chat may be well inside its window
while the assigned attendant has gone silent.
"""

from datetime import datetime, timedelta
from typing import Optional

from app.core.config import settings
from app.models.chat_assignment import ChatAssignment, ChatAssignmentStatus


def window_length() -> timedelta:
    return timedelta(hours=settings.CUSTOMER_WINDOW_HOURS)


def window_expiry(customer_message_at: datetime) -> datetime:
    return customer_message_at + window_length()


def is_within_window(assignment: Optional[ChatAssignment], now: Optional[datetime] = None) -> bool:
    if assignment is None or assignment.window_expires_at is None:
        return False
    now = now or datetime.utcnow()
    return assignment.window_expires_at > now


def is_stale(assignment: ChatAssignment, stale_hours: float, now: Optional[datetime] = None) -> bool:
    """
    True when the customer is waiting on an attendant that has not replied for
    stale_hours. Silence is measured from the later of the last reply and the
    assignment time, so a chat handed to a new attendant starts a fresh clock.
    """
    if assignment.status not in (ChatAssignmentStatus.ASSIGNED.value, ChatAssignmentStatus.ACTIVE.value):
        return False
    if assignment.assigned_to is None or assignment.last_customer_message_at is None:
        return False

    now = now or datetime.utcnow()
    cutoff = now - timedelta(hours=stale_hours)
    last_reply = assignment.last_attendant_message_at

    if last_reply is not None and assignment.last_customer_message_at <= last_reply:
        # Attendant had the last word
        return False

    references = [t for t in (last_reply, assignment.assigned_at) if t is not None]
    return bool(references) and max(references) < cutoff


def window_message(within_window: bool) -> str:
    if within_window:
        return f"Chat is within the {settings.CUSTOMER_WINDOW_HOURS}h customer window"
    return f"{settings.CUSTOMER_WINDOW_HOURS}h customer window expired - send an approved template or wait for the customer"
