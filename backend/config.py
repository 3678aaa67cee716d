"""Application configuration using pydantic-settings."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./music.db"

    # Audio storage root; uploaded files are written below it
    MUSIC_REPOSITORY_PATH: str = "./music"
    MAX_UPLOAD_SIZE_MB: int = 200

    # Device sync
    SYNC_MAX_CHUNK_SIZE: int = 500
    SYNC_STALE_SESSION_MINUTES: int = 720
    SYNC_SWEEP_ON_STARTUP: bool = True
    MAPPING_UPDATE_RETRIES: int = 3

    @field_validator("SYNC_MAX_CHUNK_SIZE", "SYNC_STALE_SESSION_MINUTES", "MAPPING_UPDATE_RETRIES")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Sync limits must be positive integers."""
        if v < 1:
            raise ValueError(f"must be a positive integer, got {v}")
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize LOG_LEVEL to an uppercase Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}, got {v!r}")
        return v.upper()

    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_SQL: bool = False  # Log every SQL statement at INFO


settings = Settings()
