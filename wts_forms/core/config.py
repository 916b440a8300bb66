from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    PROJECT_NAME: str = "WTS Forms"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"

    # Queue storage (SQLite by default, Postgres in production)
    DATABASE_URL: str = "sqlite:///./wts_forms.db"
    QUEUE_STORAGE_BACKEND: Literal["database", "memory"] = "database"
    QUEUE_STORAGE_QUOTA_BYTES: int = 5 * 1024 * 1024  # Mirrors the browser's ~5MB localStorage budget

    # Remote document store (the write every submission ends up in)
    DOCUMENT_STORE_URL: str = "http://localhost:3000/api/public"
    DOCUMENT_STORE_API_KEY: str = ""
    DOCUMENT_STORE_TIMEOUT: float = 10.0

    # Circuit breaker
    CIRCUIT_FAILURE_THRESHOLD: int = 5
    CIRCUIT_SUCCESS_THRESHOLD: int = 2
    CIRCUIT_TIMEOUT_SECONDS: float = 60.0
    CIRCUIT_REQUEST_TIMEOUT_SECONDS: float = 5.0

    # Retry with backoff
    RETRY_MAX_RETRIES: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 1.0
    RETRY_MAX_JITTER_SECONDS: float = 1.0

    # Submission queue
    QUEUE_MAX_SIZE: int = 100
    QUEUE_MAX_ATTEMPTS: int = 3
    QUEUE_SYNC_INTERVAL_SECONDS: float = 30.0

    # Monitoring
    MONITOR_INTERVAL_SECONDS: float = 60.0
    DISCORD_ALERTS_WEBHOOK_URL: str = ""
    SENTRY_DSN: str = ""

    # Seconds before the client clears the form after success/queued
    FORM_RESET_DELAY_SECONDS: float = 3.0

    # Run queue sync + monitor jobs in this process
    RUN_SYNC: bool = True

    # Admin endpoints (breaker reset, queue wipe). Empty disables them.
    ADMIN_API_KEY: str = ""

    # Frontend URL for CORS
    FRONTEND_URL: str = "http://localhost:5173"

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env", extra="ignore")


settings = Settings()
