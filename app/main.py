from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.core.database import Base, engine, SessionLocal
from app.models import Company, AttendantStatus, ChatAssignment  # Register models on Base
from app.core.config import settings
from app.core.logging import configure_logging
from app.api.v1.main import api_router
from app.services import reconciliation_service

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create all database tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
)

# Parse CORS origins from comma-separated string in settings
cors_origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],  # Allows all methods
    allow_headers=["*"],  # Allows all headers
)

app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
async def read_root():
    return {"message": "Chat distribution backend is running"}


# Initialize scheduler for background tasks
scheduler = AsyncIOScheduler()

def run_reconciliation_sweep():
    """Runs the sweep with a fresh DB session (executed in the scheduler's thread pool)"""
    db = SessionLocal()
    try:
        reconciliation_service.run_sweep(db)
    except Exception:
        logger.exception("Scheduled reconciliation sweep failed")
    finally:
        db.close()


@app.on_event("startup")
async def on_startup():
    if settings.ENABLE_SWEEP_SCHEDULER:
        scheduler.add_job(
            run_reconciliation_sweep,
            'interval',
            minutes=settings.SWEEP_INTERVAL_MINUTES,
            id='reconciliation_sweep',
            replace_existing=True
        )
        logger.info(f"[Startup] Reconciliation sweep scheduler started (interval: {settings.SWEEP_INTERVAL_MINUTES}min)")
        logger.info(f"[Startup] Stale assignment threshold: {settings.STALE_ASSIGNMENT_HOURS}h")
        logger.info(f"[Startup] Attendant inactivity threshold: {settings.ATTENDANT_INACTIVITY_MINUTES}min")
    else:
        logger.info("[Startup] Reconciliation sweep scheduler disabled (ENABLE_SWEEP_SCHEDULER=False)")

    # Start the scheduler if not already started
    if not scheduler.running:
        scheduler.start()

@app.on_event("shutdown")
async def on_shutdown():
    logger.info("Server is shutting down...")

    # Shutdown scheduler
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("[Shutdown] Scheduler stopped")

if __name__ == "__main__":
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
