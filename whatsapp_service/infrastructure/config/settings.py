"""
Unified Configuration Settings - Single Source of Truth
=======================================================
All service configuration using Pydantic Settings, read from the environment
and an optional ``.env`` file in the working directory.
"""

from functools import lru_cache
from enum import Enum
from typing import List

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings


class LogLevel(str, Enum):
    """Logging levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


# === STORAGE CONFIGURATION ===

class SupabaseSettings(BaseSettings):
    """Supabase project used for the status row and credential bucket"""
    url: str = Field(default="", description="Supabase project URL")
    service_role_key: str = Field(default="", description="Service role key (server-side only)")
    storage_bucket: str = Field(default="whatsapp-sessions", description="Bucket holding credential bundles")
    status_table: str = Field(default="whatsapp_status", description="Table holding the status row")
    status_row_id: int = Field(default=1, description="Primary key of the single status row")

    class Config:
        env_prefix = "SUPABASE_"
        env_file = ".env"
        extra = "ignore"


# === SESSION CONFIGURATION ===

class WhatsAppSettings(BaseSettings):
    """WhatsApp session and transport configuration"""
    service_token: str = Field(default="", description="Bearer token required by /api routes")
    session_id: str = Field(default="rentalflow", description="Session name, also the remote credential prefix")
    credentials_dir: str = Field(default=".wa_auth/rentalflow", description="Local credential folder")
    transport: str = Field(
        default="whatsapp_service.infrastructure.transport.neonize_transport:create_transport",
        description="Transport factory as 'module:callable'"
    )

    @field_validator('session_id')
    @classmethod
    def validate_session_id(cls, v):
        v = v.strip().strip("/")
        if not v:
            raise ValueError("session_id must not be empty")
        if "/" in v:
            raise ValueError(f"Invalid session_id '{v}': must be a single path segment")
        return v

    @field_validator('transport')
    @classmethod
    def validate_transport_path(cls, v):
        if ":" not in v:
            raise ValueError(f"Invalid transport factory '{v}'. Expected format: 'package.module:callable'")
        return v

    class Config:
        env_prefix = "WHATSAPP_"
        env_file = ".env"
        extra = "ignore"


class StatusSettings(BaseSettings):
    """Status publishing configuration"""
    heartbeat_interval_seconds: float = Field(default=30.0, gt=0, description="Heartbeat write interval")

    class Config:
        env_prefix = "STATUS_"
        env_file = ".env"
        extra = "ignore"


# === SERVER CONFIGURATION ===

class ServerSettings(BaseSettings):
    """HTTP server configuration"""
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5055, validation_alias=AliasChoices("SERVER_PORT", "PORT"))
    rate_limit: str = Field(default="120/minute", description="Default per-client rate limit")
    cors_origins: List[str] = Field(default_factory=list, description="Allowed CORS origins")

    class Config:
        env_prefix = "SERVER_"
        env_file = ".env"
        extra = "ignore"


# === SYSTEM CONFIGURATION ===

class LoggingSettings(BaseSettings):
    """Logging configuration"""
    level: LogLevel = Field(default=LogLevel.INFO)
    file_enabled: bool = Field(default=False)
    console_enabled: bool = Field(default=True)
    structured_logging: bool = Field(default=True)
    log_dir: str = Field(default="logs")
    max_file_size_mb: int = Field(default=10)
    backup_count: int = Field(default=5)

    class Config:
        env_prefix = "LOG_"
        env_file = ".env"
        extra = "ignore"


class AppSettings(BaseSettings):
    """Main application settings - Single Source of Truth"""

    app_name: str = Field(default="WhatsApp Service")
    version: str = Field(default="1.0.0")

    supabase: SupabaseSettings = Field(default_factory=SupabaseSettings)
    whatsapp: WhatsAppSettings = Field(default_factory=WhatsAppSettings)
    status: StatusSettings = Field(default_factory=StatusSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        env_file = ".env"
        env_nested_delimiter = "__"  # Allows WHATSAPP__SESSION_ID=...
        case_sensitive = False
        extra = "ignore"


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Load settings once per process. Tests call ``get_settings.cache_clear()``."""
    return AppSettings()
