"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets or connection strings in code.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Bank Ledger"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))
    API_V1_PREFIX: str = "/api/v1"

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./ledger.db")

    # Ledger concurrency
    LEDGER_LOCK_TIMEOUT_SECONDS: float = float(
        os.getenv("LEDGER_LOCK_TIMEOUT_SECONDS", "10")
    )
    LEDGER_LOCK_STRIPES: int = int(os.getenv("LEDGER_LOCK_STRIPES", "64"))
    LEDGER_MAX_ATTEMPTS: int = int(os.getenv("LEDGER_MAX_ATTEMPTS", "3"))
    LEDGER_RETRY_BACKOFF_SECONDS: float = float(
        os.getenv("LEDGER_RETRY_BACKOFF_SECONDS", "0.05")
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls. This avoids reading
    environment variables repeatedly.
    """
    return Settings()
