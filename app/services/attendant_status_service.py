"""
Attendant Status Service

Authoritative source of attendant availability and load. Every write is an
upsert keyed on (user_id, company_id) and the active chat counter is only ever
changed with an atomic UPDATE, never read-modify-write.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import dialect_insert
from app.models.attendant_status import AttendantStatus, AttendantStatusType

logger = logging.getLogger(__name__)


def get_status(db: Session, user_id: int, company_id: int) -> Optional[AttendantStatus]:
    """
    Returns the attendant's record, or None when the attendant never checked in.
    """
    return db.query(AttendantStatus).filter(
        AttendantStatus.user_id == user_id,
        AttendantStatus.company_id == company_id
    ).first()


def list_by_company(db: Session, company_id: int) -> List[AttendantStatus]:
    return db.query(AttendantStatus).filter(
        AttendantStatus.company_id == company_id
    ).order_by(AttendantStatus.user_id.asc()).all()


def list_available(db: Session, company_id: int, exclude: Iterable[int] = ()) -> List[AttendantStatus]:
    """
    Attendants that can take a new chat right now: available and below capacity.
    """
    query = db.query(AttendantStatus).filter(
        AttendantStatus.company_id == company_id,
        AttendantStatus.status == AttendantStatusType.AVAILABLE.value,
        AttendantStatus.active_chats < AttendantStatus.max_chats
    )
    excluded = list(exclude)
    if excluded:
        query = query.filter(AttendantStatus.user_id.notin_(excluded))
    return query.all()


def _upsert(db: Session, user_id: int, company_id: int, values: dict, now: datetime) -> None:
    values = dict(values, updated_at=now)
    insert_values = {
        "user_id": user_id,
        "company_id": company_id,
        "status": AttendantStatusType.OFFLINE.value,
        "active_chats": 0,
        "max_chats": settings.DEFAULT_MAX_CHATS,
        "last_activity_at": now,
        "created_at": now,
    }
    insert_values.update(values)

    stmt = dialect_insert(db, AttendantStatus.__table__).values(**insert_values).on_conflict_do_update(
        index_elements=["user_id", "company_id"],
        set_=values
    )
    try:
        db.execute(stmt)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


def set_status(
    db: Session,
    user_id: int,
    company_id: int,
    status: AttendantStatusType,
    now: Optional[datetime] = None
) -> AttendantStatus:
    """
    Sets the attendant's availability. Going offline does not release existing
    chats; stale ones are picked up by the reconciliation sweep.
    """
    now = now or datetime.utcnow()
    status = AttendantStatusType(status)
    _upsert(db, user_id, company_id, {"status": status.value, "last_activity_at": now}, now)
    logger.info(f"Attendant {user_id} (company {company_id}) status updated to: {status.value}")
    return get_status(db, user_id, company_id)


def set_max_chats(
    db: Session,
    user_id: int,
    company_id: int,
    max_chats: int,
    now: Optional[datetime] = None
) -> AttendantStatus:
    """
    Updates the attendant's capacity. Lowering it below the current load does not
    unassign anything, the attendant just stops being offered new chats.
    """
    if max_chats < 0:
        raise ValueError("max_chats must be >= 0")
    now = now or datetime.utcnow()
    _upsert(db, user_id, company_id, {"max_chats": max_chats}, now)
    return get_status(db, user_id, company_id)


def record_heartbeat(db: Session, user_id: int, company_id: int, now: Optional[datetime] = None) -> None:
    now = now or datetime.utcnow()
    _upsert(db, user_id, company_id, {"last_activity_at": now}, now)


def increment_load(db: Session, user_id: int, company_id: int, delta: int = 1) -> bool:
    """
    Atomically adjusts active_chats by delta. Negative adjustments never take the
    counter below zero. Returns False when there was no record to adjust.

    Args:
        db: Database session
        user_id: Attendant user id
        company_id: Company id
        delta: Signed adjustment, usually +1 or -1

    Returns:
        True if a record was updated (or created for positive deltas)
    """
    now = datetime.utcnow()
    try:
        if delta >= 0:
            stmt = dialect_insert(db, AttendantStatus.__table__).values(
                user_id=user_id,
                company_id=company_id,
                status=AttendantStatusType.OFFLINE.value,
                active_chats=delta,
                max_chats=settings.DEFAULT_MAX_CHATS,
                last_activity_at=now,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id", "company_id"],
                set_={"active_chats": AttendantStatus.active_chats + delta, "updated_at": now}
            )
            updated = db.execute(stmt).rowcount
        else:
            updated = db.query(AttendantStatus).filter(
                AttendantStatus.user_id == user_id,
                AttendantStatus.company_id == company_id
            ).update({
                AttendantStatus.active_chats: case(
                    (AttendantStatus.active_chats + delta < 0, 0),
                    else_=AttendantStatus.active_chats + delta
                ),
                AttendantStatus.updated_at: now,
            }, synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return updated > 0


def reserve_capacity(db: Session, user_id: int, company_id: int, now: Optional[datetime] = None) -> bool:
    """
    Takes one slot of the attendant's capacity if, at the moment of the write, the
    attendant is still available and below max_chats. The condition and the
    increment run as a single UPDATE so two concurrent reservations can never
    both take the last slot.
    """
    now = now or datetime.utcnow()
    try:
        updated = db.query(AttendantStatus).filter(
            AttendantStatus.user_id == user_id,
            AttendantStatus.company_id == company_id,
            AttendantStatus.status == AttendantStatusType.AVAILABLE.value,
            AttendantStatus.active_chats < AttendantStatus.max_chats
        ).update({
            AttendantStatus.active_chats: AttendantStatus.active_chats + 1,
            AttendantStatus.last_assigned_at: now,
            AttendantStatus.updated_at: now,
        }, synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return updated == 1


def release_capacity(db: Session, user_id: int, company_id: int) -> bool:
    """Gives back one slot previously taken with reserve_capacity."""
    return increment_load(db, user_id, company_id, delta=-1)


def count_by_status(db: Session, company_id: int) -> Dict[str, int]:
    counts = {status.value: 0 for status in AttendantStatusType}
    rows = db.query(AttendantStatus.status, func.count(AttendantStatus.id)).filter(
        AttendantStatus.company_id == company_id
    ).group_by(AttendantStatus.status).all()
    for status, count in rows:
        counts[status] = count
    return counts


def average_load(db: Session, company_id: int) -> float:
    """
    Mean of active_chats / max_chats over attendants with a non-zero capacity.
    """
    attendants = db.query(AttendantStatus).filter(
        AttendantStatus.company_id == company_id,
        AttendantStatus.max_chats > 0
    ).all()
    if not attendants:
        return 0.0
    return sum(a.load_ratio for a in attendants) / len(attendants)


def mark_inactive_offline(
    db: Session,
    company_id: int,
    inactivity_minutes: int,
    now: Optional[datetime] = None
) -> int:
    """
    Forces attendants without a heartbeat for inactivity_minutes offline.
    Called by the reconciliation sweep only.
    """
    now = now or datetime.utcnow()
    cutoff = now - timedelta(minutes=inactivity_minutes)
    try:
        changed = db.query(AttendantStatus).filter(
            AttendantStatus.company_id == company_id,
            AttendantStatus.status != AttendantStatusType.OFFLINE.value,
            AttendantStatus.last_activity_at < cutoff
        ).update({
            AttendantStatus.status: AttendantStatusType.OFFLINE.value,
            AttendantStatus.updated_at: now,
        }, synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    if changed:
        logger.info(f"Marked {changed} inactive attendants as offline for company {company_id}")
    return changed
