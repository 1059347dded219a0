"""
Attendant selection shared by first-time distribution and stale reassignment.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.attendant_status import AttendantStatus
from app.models.company import DistributionStrategy
from app.services import attendant_status_service

logger = logging.getLogger(__name__)


def rank_attendants(attendants: Iterable[AttendantStatus], strategy: DistributionStrategy) -> List[AttendantStatus]:
    """
    Orders eligible attendants best-first.

    least_loaded: lowest active_chats/max_chats, then fewest active chats, then
    most recently active, then user id.
    round_robin: least recently assigned first (never assigned goes first), then
    user id.
    """
    ranked = sorted(attendants, key=lambda a: a.user_id)

    if DistributionStrategy(strategy) == DistributionStrategy.ROUND_ROBIN:
        ranked.sort(key=lambda a: (a.last_assigned_at is not None, a.last_assigned_at or datetime.min))
        return ranked

    # Stable sorts, least significant key first
    ranked.sort(key=lambda a: a.last_activity_at or datetime.min, reverse=True)
    ranked.sort(key=lambda a: (a.load_ratio, a.active_chats))
    return ranked


def select_attendant(attendants: Iterable[AttendantStatus], strategy: DistributionStrategy) -> Optional[AttendantStatus]:
    ranked = rank_attendants(attendants, strategy)
    return ranked[0] if ranked else None


def reserve_attendant(
    db: Session,
    company_id: int,
    strategy: DistributionStrategy,
    exclude: Iterable[int] = (),
    now: Optional[datetime] = None,
    max_attempts: Optional[int] = None
) -> Optional[int]:
    """
    Picks the best eligible attendant and reserves one slot of their capacity.

    A lost race (the attendant filled up or went away between the read and the
    reservation) excludes that attendant and selects again, up to max_attempts.

    Args:
        db: Database session
        company_id: Company whose attendants are considered
        strategy: Distribution strategy used to rank attendants
        exclude: User ids that must not be picked
        now: Reservation timestamp (round-robin pointer)
        max_attempts: Bound on selection rounds, defaults to DISTRIBUTION_MAX_ATTEMPTS

    Returns:
        The user id holding the reserved slot, or None if nobody could take it
    """
    attempts = max_attempts or settings.DISTRIBUTION_MAX_ATTEMPTS
    excluded = set(exclude)

    for attempt in range(1, attempts + 1):
        candidate = select_attendant(
            attendant_status_service.list_available(db, company_id, exclude=excluded),
            strategy
        )
        if candidate is None:
            return None

        user_id = candidate.user_id
        if attendant_status_service.reserve_capacity(db, user_id, company_id, now=now):
            return user_id

        logger.info(
            f"Capacity reservation for attendant {user_id} lost a race "
            f"(company {company_id}, attempt {attempt}/{attempts})"
        )
        excluded.add(user_id)

    logger.warning(f"Gave up reserving an attendant for company {company_id} after {attempts} attempts")
    return None
