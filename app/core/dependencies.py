from app.core.database import SessionLocal
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Optional
import logging

from app.core.config import settings
from app.services import company_service

logger = logging.getLogger(__name__)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_company(x_company_id: int = Header(...), db: Session = Depends(get_db)) -> int:
    if x_company_id <= 0:
        raise HTTPException(status_code=400, detail="Invalid company id")
    try:
        company_service.ensure_company(db, x_company_id)
    except SQLAlchemyError as e:
        logger.error(f"Error registering company {x_company_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
    return x_company_id


async def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """
    Rejects scheduler calls that do not carry the configured bearer secret.
    No secret configured means the endpoint is open (local development).
    """
    if not settings.CRON_SECRET:
        return
    if authorization != f"Bearer {settings.CRON_SECRET}":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
