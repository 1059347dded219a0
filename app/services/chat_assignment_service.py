"""
Chat Assignment Service

One record per chat binding it to the attendant responsible for it. Every
transition is a single conditional UPDATE (or INSERT ... ON CONFLICT) keyed on
chat_id so concurrent webhook deliveries for the same chat serialize on the row.

Load accounting: an attendant holds one slot of capacity for every chat where
assigned_to points at them and the status is not resolved.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import and_, case, func, null, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.database import dialect_insert
from app.models.chat_assignment import ChatAssignment, ChatAssignmentStatus
from app.models.company import DistributionStrategy
from app.services import attendant_selection_service, attendant_status_service, chat_window_service

logger = logging.getLogger(__name__)

UNASSIGNED = ChatAssignmentStatus.UNASSIGNED.value
ASSIGNED = ChatAssignmentStatus.ASSIGNED.value
ACTIVE = ChatAssignmentStatus.ACTIVE.value
RESOLVED = ChatAssignmentStatus.RESOLVED.value
EXPIRED = ChatAssignmentStatus.EXPIRED.value


def get_by_chat_id(db: Session, chat_id: str, company_id: Optional[int] = None) -> Optional[ChatAssignment]:
    """
    Retrieves the assignment for a chat. When company_id is given, chats owned by
    another company are reported as absent.
    """
    query = db.query(ChatAssignment).filter(ChatAssignment.chat_id == chat_id)
    if company_id is not None:
        query = query.filter(ChatAssignment.company_id == company_id)
    return query.first()


def get_or_create(
    db: Session,
    chat_id: str,
    company_id: int,
    customer_message_at: Optional[datetime] = None,
    now: Optional[datetime] = None
) -> Optional[ChatAssignment]:
    """
    Returns the chat's assignment, creating an unassigned one on first contact.
    An existing record is returned untouched.
    """
    now = now or datetime.utcnow()
    customer_message_at = customer_message_at or now

    stmt = dialect_insert(db, ChatAssignment.__table__).values(
        chat_id=chat_id,
        company_id=company_id,
        status=UNASSIGNED,
        last_customer_message_at=customer_message_at,
        window_expires_at=chat_window_service.window_expiry(customer_message_at),
        last_activity_at=now,
        created_at=now,
        updated_at=now,
    ).on_conflict_do_nothing(index_elements=["chat_id"])

    try:
        created = db.execute(stmt).rowcount
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    if created:
        logger.info(f"Created assignment for chat {chat_id} (company {company_id})")

    assignment = get_by_chat_id(db, chat_id, company_id)
    if assignment is None:
        logger.warning(f"Chat {chat_id} belongs to another company, refusing access from company {company_id}")
    return assignment


def assign(
    db: Session,
    chat_id: str,
    attendant_id: int,
    expected_assignee: Optional[int] = None,
    now: Optional[datetime] = None
) -> bool:
    """
    Binds the chat to attendant_id. Does not touch attendant load; the caller
    must already hold a reserved slot.

    With expected_assignee=None the chat must be waiting in the queue; otherwise
    it must still belong to expected_assignee (reassignment).

    Returns:
        False when the chat was not in the expected state (someone else won)
    """
    now = now or datetime.utcnow()
    query = db.query(ChatAssignment).filter(ChatAssignment.chat_id == chat_id)
    if expected_assignee is None:
        query = query.filter(
            ChatAssignment.assigned_to.is_(None),
            ChatAssignment.status.in_([UNASSIGNED, ASSIGNED])
        )
    else:
        query = query.filter(
            ChatAssignment.assigned_to == expected_assignee,
            ChatAssignment.status.in_([ASSIGNED, ACTIVE])
        )

    try:
        updated = query.update({
            ChatAssignment.assigned_to: attendant_id,
            ChatAssignment.status: ASSIGNED,
            ChatAssignment.assigned_at: now,
            ChatAssignment.updated_at: now,
        }, synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return updated == 1


def record_activity(
    db: Session,
    chat_id: str,
    from_customer: bool,
    timestamp: Optional[datetime] = None,
    now: Optional[datetime] = None
) -> Optional[ChatAssignment]:
    """
    Records a message on the chat.

    Customer messages move last_customer_message_at and window_expires_at forward
    (never back), reopen expired chats and put resolved chats back in the queue.
    Attendant messages never touch the window and turn an assigned chat active.
    """
    now = now or datetime.utcnow()
    timestamp = timestamp or now

    if from_customer:
        new_expiry = chat_window_service.window_expiry(timestamp)
        values = {
            ChatAssignment.last_customer_message_at: case(
                (or_(ChatAssignment.last_customer_message_at.is_(None),
                     ChatAssignment.last_customer_message_at < timestamp), timestamp),
                else_=ChatAssignment.last_customer_message_at
            ),
            ChatAssignment.window_expires_at: case(
                (or_(ChatAssignment.window_expires_at.is_(None),
                     ChatAssignment.window_expires_at < new_expiry), new_expiry),
                else_=ChatAssignment.window_expires_at
            ),
            ChatAssignment.last_activity_at: now,
            ChatAssignment.updated_at: now,
        }
        if new_expiry > now:
            # Customer re-engaging opens a fresh window
            values[ChatAssignment.status] = case(
                (and_(ChatAssignment.status == EXPIRED, ChatAssignment.assigned_to.isnot(None)), ACTIVE),
                (ChatAssignment.status.in_([EXPIRED, RESOLVED]), UNASSIGNED),
                else_=ChatAssignment.status
            )
            values[ChatAssignment.assigned_to] = case(
                (ChatAssignment.status == RESOLVED, null()),
                else_=ChatAssignment.assigned_to
            )
    else:
        values = {
            ChatAssignment.last_attendant_message_at: timestamp,
            ChatAssignment.last_activity_at: now,
            ChatAssignment.status: case(
                (ChatAssignment.status == ASSIGNED, ACTIVE),
                else_=ChatAssignment.status
            ),
            ChatAssignment.updated_at: now,
        }

    try:
        updated = db.query(ChatAssignment).filter(
            ChatAssignment.chat_id == chat_id
        ).update(values, synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    if not updated:
        return None
    return get_by_chat_id(db, chat_id)


def list_by_attendant(db: Session, attendant_id: int, company_id: int) -> List[ChatAssignment]:
    return db.query(ChatAssignment).filter(
        ChatAssignment.assigned_to == attendant_id,
        ChatAssignment.company_id == company_id,
        ChatAssignment.status.in_([ASSIGNED, ACTIVE])
    ).order_by(ChatAssignment.assigned_at.asc()).all()


def list_unassigned(db: Session, company_id: int) -> List[ChatAssignment]:
    """
    The company's queue, oldest customer message first.
    """
    return db.query(ChatAssignment).filter(
        ChatAssignment.company_id == company_id,
        or_(
            ChatAssignment.status == UNASSIGNED,
            and_(ChatAssignment.status == ASSIGNED, ChatAssignment.assigned_to.is_(None))
        )
    ).order_by(ChatAssignment.last_customer_message_at.asc()).all()


def count_by_status(db: Session, company_id: int) -> Dict[str, int]:
    counts = {status.value: 0 for status in ChatAssignmentStatus}
    rows = db.query(ChatAssignment.status, func.count(ChatAssignment.id)).filter(
        ChatAssignment.company_id == company_id
    ).group_by(ChatAssignment.status).all()
    for status, count in rows:
        counts[status] = count
    return counts


def mark_expired(db: Session, company_id: int, now: Optional[datetime] = None) -> int:
    """
    Flags chats whose customer window has lapsed. The attendant keeps the chat;
    expiry only restricts what can be sent to the customer.
    """
    now = now or datetime.utcnow()
    try:
        expired = db.query(ChatAssignment).filter(
            ChatAssignment.company_id == company_id,
            ChatAssignment.window_expires_at < now,
            ChatAssignment.status.notin_([RESOLVED, EXPIRED])
        ).update({
            ChatAssignment.status: EXPIRED,
            ChatAssignment.updated_at: now,
        }, synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    if expired:
        logger.info(f"Marked {expired} chats as expired (customer window) for company {company_id}")
    return expired


def resolve(db: Session, chat_id: str, company_id: Optional[int] = None, now: Optional[datetime] = None) -> Optional[ChatAssignment]:
    """
    Closes the chat and gives the attendant's slot back. Resolving twice releases
    the slot once.
    """
    now = now or datetime.utcnow()
    assignment = get_by_chat_id(db, chat_id, company_id)
    if assignment is None or assignment.status == RESOLVED:
        return assignment

    attendant_id = assignment.assigned_to
    owner_company_id = assignment.company_id

    try:
        updated = db.query(ChatAssignment).filter(
            ChatAssignment.chat_id == chat_id,
            ChatAssignment.status != RESOLVED,
            ChatAssignment.assigned_to.is_(None) if attendant_id is None else ChatAssignment.assigned_to == attendant_id
        ).update({
            ChatAssignment.status: RESOLVED,
            ChatAssignment.updated_at: now,
        }, synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    if updated and attendant_id is not None:
        attendant_status_service.release_capacity(db, attendant_id, owner_company_id)
        logger.info(f"Chat {chat_id} resolved, released attendant {attendant_id}")
    return get_by_chat_id(db, chat_id)


def release(db: Session, chat_id: str, company_id: Optional[int] = None, now: Optional[datetime] = None) -> Optional[ChatAssignment]:
    """
    Takes the chat away from its attendant and puts it back in the queue.
    """
    now = now or datetime.utcnow()
    assignment = get_by_chat_id(db, chat_id, company_id)
    if assignment is None or assignment.assigned_to is None or assignment.status == RESOLVED:
        return assignment

    attendant_id = assignment.assigned_to
    owner_company_id = assignment.company_id

    try:
        updated = db.query(ChatAssignment).filter(
            ChatAssignment.chat_id == chat_id,
            ChatAssignment.assigned_to == attendant_id,
            ChatAssignment.status != RESOLVED
        ).update({
            ChatAssignment.assigned_to: None,
            ChatAssignment.assigned_at: None,
            ChatAssignment.status: UNASSIGNED,
            ChatAssignment.updated_at: now,
        }, synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    if updated:
        attendant_status_service.release_capacity(db, attendant_id, owner_company_id)
        logger.info(f"Chat {chat_id} released from attendant {attendant_id}")
    return get_by_chat_id(db, chat_id)


def list_stale(db: Session, company_id: int, stale_hours: float, now: Optional[datetime] = None) -> List[ChatAssignment]:
    """
    Assignments where the customer is waiting on an attendant silent for
    stale_hours. Expired chats are skipped.
    """
    now = now or datetime.utcnow()
    cutoff = now - timedelta(hours=stale_hours)
    candidates = db.query(ChatAssignment).filter(
        ChatAssignment.company_id == company_id,
        ChatAssignment.status.in_([ASSIGNED, ACTIVE]),
        ChatAssignment.assigned_to.isnot(None),
        # Later of last reply and assignment time is older than the cutoff
        func.coalesce(ChatAssignment.last_attendant_message_at, ChatAssignment.assigned_at) < cutoff,
        func.coalesce(ChatAssignment.assigned_at, ChatAssignment.last_attendant_message_at) < cutoff
    ).order_by(ChatAssignment.last_customer_message_at.asc()).all()
    return [a for a in candidates if chat_window_service.is_stale(a, stale_hours, now)]


def reassign_stale(
    db: Session,
    company_id: int,
    stale_hours: float,
    strategy: DistributionStrategy = DistributionStrategy.LEAST_LOADED,
    now: Optional[datetime] = None
) -> int:
    """
    Moves stale chats to another attendant, transferring one slot of load from
    the old attendant to the new one. Chats with nobody else available stay
    where they are.

    Returns:
        Number of chats reassigned
    """
    now = now or datetime.utcnow()
    reassigned = 0

    for assignment in list_stale(db, company_id, stale_hours, now):
        chat_id = assignment.chat_id
        old_attendant = assignment.assigned_to

        new_attendant = attendant_selection_service.reserve_attendant(
            db, company_id, strategy, exclude=[old_attendant], now=now
        )
        if new_attendant is None:
            logger.warning(f"Chat {chat_id} is stale but no other attendant is available (company {company_id})")
            continue

        try:
            moved = assign(db, chat_id, new_attendant, expected_assignee=old_attendant, now=now)
        except SQLAlchemyError:
            attendant_status_service.release_capacity(db, new_attendant, company_id)
            raise

        if not moved:
            # The chat changed hands or was resolved meanwhile
            attendant_status_service.release_capacity(db, new_attendant, company_id)
            continue

        attendant_status_service.release_capacity(db, old_attendant, company_id)
        reassigned += 1
        logger.info(f"Chat {chat_id} reassigned from {old_attendant} to {new_attendant}")

    return reassigned
