from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.dependencies import get_db, verify_cron_secret
from app.schemas.sweep import SweepReport
from app.services import reconciliation_service

router = APIRouter()


@router.api_route("/reassign-chats", methods=["GET", "POST"], response_model=SweepReport, dependencies=[Depends(verify_cron_secret)])
def reassign_chats(db: Session = Depends(get_db)):
    """
    Runs the reconciliation sweep over every active company. Meant for an external
    scheduler; the in-process APScheduler job does the same thing.
    """
    return reconciliation_service.run_sweep(db)
