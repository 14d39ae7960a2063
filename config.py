"""Application configuration using Pydantic Settings."""

from typing import List, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Internship Placement Tracker"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: Union[str, List[str]] = ["*"]

    # Storage (CSV snapshots + seed files)
    DATA_DIR: str = "data"
    LOAD_ON_STARTUP: bool = True
    SAVE_ON_SHUTDOWN: bool = True
    DEFAULT_PASSWORD: str = "password"

    # Placement rules
    MAX_ACTIVE_APPLICATIONS: int = 3
    MAX_INTERNSHIPS_PER_REP: int = 5
    MIN_SLOTS: int = 1
    MAX_SLOTS: int = 10

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or console

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_origins(cls, v):
        """Parse comma-separated origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v


# Create global settings instance
settings = Settings()
