from pydantic_settings import BaseSettings
from pydantic import validator
from typing import List


class Settings(BaseSettings):
    # Application settings
    APP_NAME: str = "Biometric Attendance Ingestion"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # CORS settings
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./attendance.db"
    DATABASE_ECHO: bool = False

    # Webhook security
    WEBHOOK_FRESHNESS_WINDOW_SECONDS: int = 300

    # Device polling (api_pull integration)
    DEVICE_PULL_PATH: str = "/api/attendance/logs"
    DEVICE_PULL_TIMEOUT_SECONDS: float = 10.0
    DEVICE_PULL_MAX_ATTEMPTS: int = 3
    DEVICE_PULL_BACKOFF_SECONDS: float = 2.0

    # Background auto-sync
    AUTO_SYNC_ENABLED: bool = False
    AUTO_SYNC_INTERVAL_SECONDS: int = 300

    @validator("ALLOWED_ORIGINS", pre=True)
    def parse_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @validator("DATABASE_URL")
    def validate_database_url(cls, v):
        if not v:
            raise ValueError("DATABASE_URL is required")
        return v

    @validator("DEVICE_PULL_PATH")
    def validate_pull_path(cls, v):
        if not v.startswith("/"):
            return f"/{v}"
        return v

    @validator("DEVICE_PULL_MAX_ATTEMPTS", "AUTO_SYNC_INTERVAL_SECONDS")
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @validator("LOG_LEVEL")
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
