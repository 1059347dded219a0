from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional, Union

from app.core.dependencies import get_db, get_current_company
from app.models.attendant_status import AttendantStatusType
from app.schemas import attendant_status as schemas_attendant_status
from app.services import attendant_status_service, chat_distribution_service
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/status", response_model=Union[schemas_attendant_status.AttendantStatus, List[schemas_attendant_status.AttendantStatus]])
def read_attendant_status(user_id: Optional[int] = None, db: Session = Depends(get_db), current_company_id: int = Depends(get_current_company)):
    if user_id is None:
        return attendant_status_service.list_by_company(db, company_id=current_company_id)

    db_status = attendant_status_service.get_status(db, user_id=user_id, company_id=current_company_id)
    if db_status is None:
        raise HTTPException(status_code=404, detail="Attendant status not found")
    return db_status


@router.post("/status", response_model=schemas_attendant_status.AttendantStatus)
def update_attendant_status(
    update: schemas_attendant_status.AttendantStatusUpdate,
    db: Session = Depends(get_db),
    current_company_id: int = Depends(get_current_company),
):
    """
    Updates capacity and/or availability. Becoming available or gaining capacity
    immediately pulls queued chats.
    """
    if update.status is None and update.max_chats is None:
        raise HTTPException(status_code=400, detail="status or max_chats is required")

    try:
        if update.max_chats is not None:
            attendant_status_service.set_max_chats(db, update.user_id, current_company_id, update.max_chats)
        if update.status is not None:
            attendant_status_service.set_status(db, update.user_id, current_company_id, update.status)
    except SQLAlchemyError as e:
        logger.error(f"Error updating attendant {update.user_id} status: {e}")
        raise HTTPException(status_code=500, detail="Status update failed, retry")

    # The status is already saved; a failed drain is picked up by the next sweep
    db_status = attendant_status_service.get_status(db, update.user_id, current_company_id)
    if db_status is not None and db_status.status == AttendantStatusType.AVAILABLE.value:
        try:
            chat_distribution_service.distribute_queued(db, current_company_id)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error distributing queued chats for company {current_company_id}: {e}")

    return attendant_status_service.get_status(db, update.user_id, current_company_id)


@router.put("/status/heartbeat")
def attendant_heartbeat(
    heartbeat: schemas_attendant_status.AttendantHeartbeat,
    db: Session = Depends(get_db),
    current_company_id: int = Depends(get_current_company),
):
    try:
        attendant_status_service.record_heartbeat(db, heartbeat.user_id, current_company_id)
    except SQLAlchemyError as e:
        logger.error(f"Error recording heartbeat for attendant {heartbeat.user_id}: {e}")
        raise HTTPException(status_code=500, detail="Heartbeat failed, retry")
    return {"success": True, "message": "Activity updated"}
