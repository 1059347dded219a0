from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.dependencies import get_db, get_current_company
from app.models.chat_assignment import ChatAssignmentStatus
from app.schemas import chat_assignment as schemas_chat_assignment
from app.services import chat_assignment_service, chat_distribution_service, chat_window_service
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=List[schemas_chat_assignment.ChatAssignment])
def read_chat_assignments(
    attendant_id: Optional[int] = None,
    unassigned: bool = False,
    db: Session = Depends(get_db),
    current_company_id: int = Depends(get_current_company),
):
    if unassigned:
        return chat_assignment_service.list_unassigned(db, company_id=current_company_id)
    if attendant_id is not None:
        return chat_assignment_service.list_by_attendant(db, attendant_id=attendant_id, company_id=current_company_id)
    raise HTTPException(status_code=400, detail="attendant_id or unassigned=true is required")


@router.post("/inbound", response_model=schemas_chat_assignment.InboundResult)
def inbound_customer_message(
    message: schemas_chat_assignment.InboundMessage,
    db: Session = Depends(get_db),
    current_company_id: int = Depends(get_current_company),
):
    """
    Called by the webhook handler for every customer message.
    """
    try:
        assignment, attendant_id = chat_distribution_service.handle_inbound_message(
            db, message.chat_id, current_company_id, timestamp=message.timestamp
        )
    except SQLAlchemyError as e:
        logger.error(f"Error handling inbound message for chat {message.chat_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    if assignment is None:
        raise HTTPException(status_code=409, detail="Chat belongs to another company")

    queued = attendant_id is None and assignment.status != ChatAssignmentStatus.RESOLVED.value
    return {"assignment": assignment, "assigned_to": attendant_id, "queued": queued}


@router.get("/{chat_id}", response_model=schemas_chat_assignment.ChatAssignment)
def read_chat_assignment(chat_id: str, db: Session = Depends(get_db), current_company_id: int = Depends(get_current_company)):
    assignment = chat_assignment_service.get_by_chat_id(db, chat_id, company_id=current_company_id)
    if assignment is None:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return assignment


@router.get("/{chat_id}/window", response_model=schemas_chat_assignment.WindowCheck)
def check_chat_window(chat_id: str, db: Session = Depends(get_db), current_company_id: int = Depends(get_current_company)):
    """
    Tells the messaging layer whether free-form replies are still allowed.
    """
    assignment = chat_assignment_service.get_by_chat_id(db, chat_id, company_id=current_company_id)
    if assignment is None:
        raise HTTPException(status_code=404, detail="Assignment not found")

    is_valid = chat_window_service.is_within_window(assignment)
    return {
        "chat_id": chat_id,
        "is_valid": is_valid,
        "expired": not is_valid,
        "window_expires_at": assignment.window_expires_at,
        "message": chat_window_service.window_message(is_valid),
    }


@router.post("/{chat_id}/activity", response_model=schemas_chat_assignment.ChatAssignment)
def record_chat_activity(
    chat_id: str,
    activity: schemas_chat_assignment.ChatActivity,
    db: Session = Depends(get_db),
    current_company_id: int = Depends(get_current_company),
):
    if chat_assignment_service.get_by_chat_id(db, chat_id, company_id=current_company_id) is None:
        raise HTTPException(status_code=404, detail="Assignment not found")
    try:
        assignment = chat_assignment_service.record_activity(
            db, chat_id, from_customer=activity.from_customer, timestamp=activity.timestamp
        )
    except SQLAlchemyError as e:
        logger.error(f"Error recording activity for chat {chat_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
    return assignment


@router.post("/{chat_id}/resolve", response_model=schemas_chat_assignment.ChatAssignment)
def resolve_chat(chat_id: str, db: Session = Depends(get_db), current_company_id: int = Depends(get_current_company)):
    try:
        assignment = chat_assignment_service.resolve(db, chat_id, company_id=current_company_id)
    except SQLAlchemyError as e:
        logger.error(f"Error resolving chat {chat_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
    if assignment is None:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return assignment


@router.post("/{chat_id}/release", response_model=schemas_chat_assignment.ChatAssignment)
def release_chat(chat_id: str, db: Session = Depends(get_db), current_company_id: int = Depends(get_current_company)):
    try:
        assignment = chat_assignment_service.release(db, chat_id, company_id=current_company_id)
    except SQLAlchemyError as e:
        logger.error(f"Error releasing chat {chat_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
    if assignment is None:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return assignment
