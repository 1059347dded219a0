from typing import Optional

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "ChatDistribution"
    API_V1_STR: str = "/api/v1"
    DATABASE_URL: str
    LOG_LEVEL: str = "INFO"

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: str = "http://localhost:8080,http://localhost:5173,*"

    # Shared secret expected by the cron endpoint (Authorization: Bearer <secret>)
    CRON_SECRET: Optional[str] = None

    # Reconciliation sweep settings
    ENABLE_SWEEP_SCHEDULER: bool = True
    SWEEP_INTERVAL_MINUTES: int = 30  # Run the sweep every 30 minutes
    STALE_ASSIGNMENT_HOURS: int = 24  # Reassign when the attendant is silent for 24 hours
    ATTENDANT_INACTIVITY_MINUTES: int = 10  # Demote to offline after 10 minutes without heartbeat

    # Distribution settings
    CUSTOMER_WINDOW_HOURS: int = 24  # WhatsApp customer service window
    DEFAULT_MAX_CHATS: int = 3
    DISTRIBUTION_MAX_ATTEMPTS: int = 3
    DEFAULT_DISTRIBUTION_STRATEGY: str = "least_loaded"

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'

settings = Settings()
