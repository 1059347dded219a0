from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.dependencies import get_db, get_current_company
from app.schemas.metrics import DistributionMetrics
from app.services import metrics_service

router = APIRouter()


@router.get("/metrics", response_model=DistributionMetrics)
def read_distribution_metrics(db: Session = Depends(get_db), current_company_id: int = Depends(get_current_company)):
    return metrics_service.get_distribution_metrics(db, company_id=current_company_id)
