"""
Application configuration and environment settings.
"""
from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List, Union


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "CrowdQR Live"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./crowdqr.db"
    DB_ECHO: bool = False

    # JWT
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7

    # CORS
    CORS_ORIGINS: Union[List[str], str] = ["http://localhost:3000", "http://localhost:8080"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Presence
    ACTIVE_USER_WINDOW_MINUTES: int = 15  # Session counts as active if seen within this window
    STALE_SESSION_HOURS: int = 24 * 7  # Sessions older than this are removed by purge_stale_sessions.py

    # Requests
    MAX_REQUESTS_PER_SESSION: int = 0  # 0 disables the per-session request limit

    # Dashboard
    TOP_REQUESTS_DEFAULT_LIMIT: int = 10
    RECENT_REQUESTS_LIMIT: int = 5

    # Live updates
    BROADCAST_SEND_TIMEOUT_SECONDS: float = 5.0

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
