from fastapi import APIRouter

from app.api.v1.endpoints import attendant_status, chat_assignments, metrics, cron


api_router = APIRouter()

api_router.include_router(attendant_status.router, prefix="/attendants", tags=["attendants"])
api_router.include_router(chat_assignments.router, prefix="/chat-assignments", tags=["chat-assignments"])
api_router.include_router(metrics.router, prefix="/admin", tags=["admin"])
api_router.include_router(cron.router, prefix="/cron", tags=["cron"])
