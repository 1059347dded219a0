from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.core.config import settings
from app.models.company import DistributionStrategy
from app.models.chat_assignment import ChatAssignment, ChatAssignmentStatus
from app.services import attendant_selection_service, attendant_status_service, chat_assignment_service, company_service
from datetime import datetime
from typing import Optional, Tuple
import logging

logger = logging.getLogger(__name__)


def get_company_strategy(db: Session, company_id: int) -> DistributionStrategy:
    """
    Returns the company's distribution strategy, falling back to the configured default.
    """
    company = company_service.get_company(db, company_id)
    configured = company.distribution_strategy if company and company.distribution_strategy else settings.DEFAULT_DISTRIBUTION_STRATEGY
    try:
        return DistributionStrategy(configured)
    except ValueError:
        logger.warning(f"Unknown distribution strategy '{configured}' for company {company_id}, using least_loaded")
        return DistributionStrategy.LEAST_LOADED


def distribute_chat(
    db: Session,
    chat_id: str,
    company_id: int,
    strategy: Optional[DistributionStrategy] = None,
    now: Optional[datetime] = None
) -> Optional[int]:
    """
    Assigns a queued chat to the best available attendant.

    Capacity is reserved first; the assignment is then committed only if the chat
    is still unassigned. A chat that somebody else assigned in the meantime gives
    the reserved slot back and reports the winner.

    Args:
        db: Database session
        chat_id: Chat to distribute
        company_id: Company owning the chat
        strategy: Overrides the company's configured strategy
        now: Assignment timestamp

    Returns:
        The attendant user id now responsible for the chat, or None if the chat
        stays queued
    """
    now = now or datetime.utcnow()
    assignment = chat_assignment_service.get_by_chat_id(db, chat_id, company_id)
    if assignment is None:
        logger.warning(f"Cannot distribute unknown chat {chat_id} for company {company_id}")
        return None
    if assignment.status == ChatAssignmentStatus.RESOLVED.value:
        return None
    if assignment.assigned_to is not None:
        return assignment.assigned_to

    strategy = strategy or get_company_strategy(db, company_id)
    attendant_id = attendant_selection_service.reserve_attendant(db, company_id, strategy, now=now)
    if attendant_id is None:
        logger.warning(f"No available attendant for chat {chat_id} (company {company_id}), chat stays queued")
        return None

    try:
        assigned = chat_assignment_service.assign(db, chat_id, attendant_id, now=now)
    except SQLAlchemyError:
        logger.error(f"Failed to assign chat {chat_id} to attendant {attendant_id}, releasing reserved capacity")
        attendant_status_service.release_capacity(db, attendant_id, company_id)
        raise

    if not assigned:
        attendant_status_service.release_capacity(db, attendant_id, company_id)
        current = chat_assignment_service.get_by_chat_id(db, chat_id, company_id)
        winner = current.assigned_to if current else None
        logger.info(f"Chat {chat_id} was taken concurrently (now {winner}), released attendant {attendant_id}")
        return winner

    logger.info(f"Chat {chat_id} assigned to attendant {attendant_id} ({strategy.value})")
    return attendant_id


def handle_inbound_message(
    db: Session,
    chat_id: str,
    company_id: int,
    timestamp: Optional[datetime] = None,
    now: Optional[datetime] = None
) -> Tuple[Optional[ChatAssignment], Optional[int]]:
    """
    Entry point for a customer message: records it and distributes the chat when
    nobody owns it.

    Returns:
        (assignment, attendant id or None). The assignment is None when the chat
        belongs to another company.
    """
    now = now or datetime.utcnow()
    timestamp = timestamp or now

    assignment = chat_assignment_service.get_or_create(db, chat_id, company_id, timestamp, now=now)
    if assignment is None:
        return None, None

    assignment = chat_assignment_service.record_activity(db, chat_id, from_customer=True, timestamp=timestamp, now=now)
    if assignment is None or assignment.status == ChatAssignmentStatus.RESOLVED.value:
        # Too old to reopen a resolved chat; nobody owns it
        return assignment, None

    attendant_id = assignment.assigned_to

    if attendant_id is None:
        attendant_id = distribute_chat(db, chat_id, company_id, now=now)
        assignment = chat_assignment_service.get_by_chat_id(db, chat_id, company_id)

    return assignment, attendant_id


def distribute_queued(db: Session, company_id: int, now: Optional[datetime] = None) -> int:
    """
    Hands queued chats to attendants until the queue or the capacity runs out.

    Returns:
        Number of chats assigned
    """
    now = now or datetime.utcnow()
    strategy = get_company_strategy(db, company_id)
    chat_ids = [a.chat_id for a in chat_assignment_service.list_unassigned(db, company_id)]

    distributed = 0
    for chat_id in chat_ids:
        if distribute_chat(db, chat_id, company_id, strategy=strategy, now=now) is None:
            break
        distributed += 1

    if distributed:
        logger.info(f"Distributed {distributed} queued chats for company {company_id}")
    return distributed
