# FILE: messboard/config.py
"""
Configuration management for Mess Board
Loads from environment variables with validation
"""
import os
from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True
    )

    # Backend server
    backend_host: str = Field(default="0.0.0.0", alias="BACKEND_HOST")
    backend_port: int = Field(default=5000, alias="BACKEND_PORT")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Record lifecycle
    record_ttl_hours: float = Field(
        default=5.0,
        alias="RECORD_TTL_HOURS",
        description="How long a posted menu stays visible before it expires"
    )
    sweep_interval_seconds: int = Field(default=1800, alias="SWEEP_INTERVAL_SECONDS")
    sweep_enabled: bool = Field(default=True, alias="SWEEP_ENABLED")
    sweep_on_startup: bool = Field(default=True, alias="SWEEP_ON_STARTUP")

    # Record store
    store_backend: str = Field(default="json", alias="STORE_BACKEND")
    data_dir: str = Field(default="./data", alias="DATA_DIR")
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db: str = Field(default="pune-mess-app", alias="MONGODB_DB")
    mongodb_collection: str = Field(default="messes", alias="MONGODB_COLLECTION")
    mongodb_timeout_ms: int = Field(default=10000, alias="MONGODB_TIMEOUT_MS")

    # Blob store
    media_dir: str = Field(default="./data/media", alias="MEDIA_DIR")
    media_url_prefix: str = Field(default="/media", alias="MEDIA_URL_PREFIX")
    max_upload_mb: int = Field(default=10, alias="MAX_UPLOAD_MB")

    # Notifications
    subscriber_queue_size: int = Field(default=100, alias="SUBSCRIBER_QUEUE_SIZE")

    # Telemetry
    telemetry_enabled: bool = Field(default=True, alias="TELEMETRY_ENABLED")
    telemetry_timezone: str = Field(default="UTC", alias="TELEMETRY_TIMEZONE")
    telemetry_retention_days: int = Field(default=30, alias="TELEMETRY_RETENTION_DAYS")
    logs_dir: str = Field(default="./logs", alias="LOGS_DIR")

    # Security
    body_size_limit_mb: int = Field(default=10, alias="BODY_SIZE_LIMIT_MB")

    # CORS
    cors_origins: List[str] = Field(default=["*"], alias="CORS_ORIGINS")

    # Validators
    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v):
        v = v.strip().lower()
        if v not in ["json", "mongo", "memory"]:
            raise ValueError("store_backend must be 'json', 'mongo', or 'memory'")
        return v

    @field_validator("record_ttl_hours")
    @classmethod
    def validate_record_ttl_hours(cls, v):
        if v <= 0:
            raise ValueError("record_ttl_hours must be positive")
        return v

    @field_validator("sweep_interval_seconds")
    @classmethod
    def validate_sweep_interval(cls, v):
        if v < 1:
            raise ValueError("sweep_interval_seconds must be at least 1 second")
        return v

    @field_validator("media_url_prefix")
    @classmethod
    def validate_media_url_prefix(cls, v):
        if not v.startswith("/"):
            raise ValueError("media_url_prefix must start with '/'")
        return v.rstrip("/") or "/media"

    @property
    def record_ttl_ms(self) -> int:
        """TTL in milliseconds"""
        return int(round(self.record_ttl_hours * 60 * 60 * 1000))

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Ensure directories exist
        for dir_path in [self.data_dir, self.media_dir, self.logs_dir]:
            os.makedirs(dir_path, exist_ok=True)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create singleton settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings():
    """Reload settings (useful for testing)"""
    global _settings
    _settings = None
    return get_settings()
