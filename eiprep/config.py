"""Engine configuration module."""

import logging
from typing import Optional

from pydantic import BaseSettings, validator


class Settings(BaseSettings):
    """Engine settings, read from the environment and an optional .env file."""

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./eiprep.db"
    SQL_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_FILE: Optional[str] = None

    # Scoring settings
    SCORE_CAP_PER_QUESTION: bool = True

    # Detached write settings
    WRITE_QUEUE_MAX_SIZE: int = 0

    @validator("LOG_LEVEL")
    def validate_log_level(cls, v):
        """Validate log level"""
        if not isinstance(logging.getLevelName(v.upper()), int):
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @validator("WRITE_QUEUE_MAX_SIZE")
    def validate_queue_size(cls, v):
        """Validate queue bound"""
        if v < 0:
            raise ValueError(f"WRITE_QUEUE_MAX_SIZE must be >= 0, got {v}")
        return v

    class Config:
        """Pydantic settings config."""
        env_file = ".env"
        case_sensitive = True


# Create global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return settings
