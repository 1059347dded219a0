import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.database import dialect_insert
from app.models.company import Company

logger = logging.getLogger(__name__)


def get_company(db: Session, company_id: int):
    return db.query(Company).filter(Company.id == company_id).first()


def ensure_company(db: Session, company_id: int) -> bool:
    """
    Registers the company on first contact so attendant and chat rows always
    have a parent. Existing companies are left untouched.

    Returns:
        True if the company row was created by this call
    """
    stmt = dialect_insert(db, Company.__table__).values(id=company_id).on_conflict_do_nothing(
        index_elements=["id"]
    )
    try:
        created = db.execute(stmt).rowcount
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    if created:
        logger.info(f"Registered company {company_id}")
    return bool(created)
