"""
Reconciliation Sweep

Periodic corrective pass over every active company, triggered by APScheduler or
by the cron endpoint. Per company, in order:

    1. expire   - flag chats whose customer window lapsed
    2. reassign - move stale chats away from silent attendants
    3. demote   - force attendants without heartbeat offline
    4. drain    - hand queued chats to attendants with free capacity

Each step runs on its own; a failure is logged, recorded on the result and the
sweep carries on with the next step and the next company.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.company import Company
from app.schemas.sweep import CompanySweepResult, SweepReport
from app.services import attendant_status_service, chat_assignment_service, chat_distribution_service

logger = logging.getLogger(__name__)


def get_active_company_ids(db: Session) -> List[int]:
    return [row.id for row in db.query(Company.id).filter(Company.is_active == True).order_by(Company.id.asc()).all()]


def sweep_company(
    db: Session,
    company_id: int,
    stale_hours: Optional[float] = None,
    inactivity_minutes: Optional[int] = None,
    now: Optional[datetime] = None
) -> CompanySweepResult:
    stale_hours = stale_hours if stale_hours is not None else settings.STALE_ASSIGNMENT_HOURS
    inactivity_minutes = inactivity_minutes if inactivity_minutes is not None else settings.ATTENDANT_INACTIVITY_MINUTES
    now = now or datetime.utcnow()
    result = CompanySweepResult(company_id=company_id)

    def run_step(name, field, func):
        try:
            setattr(result, field, func())
        except Exception:
            db.rollback()
            logger.exception(f"Sweep step '{name}' failed for company {company_id}")
            result.failed_steps.append(name)

    run_step("expire", "expired_chats",
             lambda: chat_assignment_service.mark_expired(db, company_id, now=now))
    run_step("reassign", "reassigned_chats",
             lambda: chat_assignment_service.reassign_stale(
                 db, company_id, stale_hours,
                 strategy=chat_distribution_service.get_company_strategy(db, company_id),
                 now=now))
    run_step("demote", "offline_attendants",
             lambda: attendant_status_service.mark_inactive_offline(db, company_id, inactivity_minutes, now=now))
    run_step("drain", "distributed_chats",
             lambda: chat_distribution_service.distribute_queued(db, company_id, now=now))

    return result


def run_sweep(
    db: Session,
    company_ids: Optional[Iterable[int]] = None,
    stale_hours: Optional[float] = None,
    inactivity_minutes: Optional[int] = None,
    now: Optional[datetime] = None
) -> SweepReport:
    """
    Sweeps the given companies (default: every active company).

    Returns:
        Per-company results and totals
    """
    now = now or datetime.utcnow()
    if company_ids is None:
        company_ids = get_active_company_ids(db)
    company_ids = list(company_ids)

    logger.info(f"Starting reconciliation sweep for {len(company_ids)} companies")
    report = SweepReport(timestamp=now)

    for company_id in company_ids:
        try:
            result = sweep_company(db, company_id, stale_hours, inactivity_minutes, now=now)
        except Exception:
            db.rollback()
            logger.exception(f"Error processing company {company_id} during sweep")
            report.failed_companies.append(company_id)
            continue

        report.results.append(result)
        report.companies += 1
        report.expired_chats += result.expired_chats
        report.reassigned_chats += result.reassigned_chats
        report.distributed_chats += result.distributed_chats
        report.offline_attendants += result.offline_attendants

    logger.info(
        f"Sweep complete: companies={report.companies} expired={report.expired_chats} "
        f"reassigned={report.reassigned_chats} distributed={report.distributed_chats} "
        f"offline={report.offline_attendants} failed={report.failed_companies}"
    )
    return report
