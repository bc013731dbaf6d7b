"""
Reimbursement Workflow Configuration
Pydantic Settings for environment-based configuration
Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

import json
from functools import lru_cache
from typing import Any, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkflowSettings(BaseSettings):
    """
    Workflow settings loaded from environment variables.

    All variables are prefixed with REIMBURSEMENT_ (e.g. REIMBURSEMENT_LOG_LEVEL).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="REIMBURSEMENT_",
    )

    # =========================================================================
    # Application Settings
    # =========================================================================
    ENVIRONMENT: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment: development, staging, production, testing"
    )
    DEBUG: bool = Field(default=False, description="Debug mode (echoes SQL)")

    # =========================================================================
    # Logging
    # =========================================================================
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FILE: Optional[str] = Field(default=None, description="Optional log file path")
    JSON_LOGS: Optional[bool] = Field(
        default=None,
        description="Serialize logs as JSON (defaults to on in production)",
    )

    # =========================================================================
    # Database Configuration
    # =========================================================================
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./reimbursements.db",
        description="Async SQLAlchemy database URL",
    )
    DB_POOL_SIZE: int = Field(default=10, ge=1, description="Connection pool size")
    DB_MAX_OVERFLOW: int = Field(default=10, ge=0, description="Max overflow connections")
    DB_POOL_TIMEOUT: int = Field(default=30, gt=0, description="Connection timeout (seconds)")
    CREATE_TABLES_ON_STARTUP: bool = Field(
        default=False,
        description="Create missing tables at startup (development only, no migrations)",
    )

    # =========================================================================
    # API Configuration
    # =========================================================================
    API_PREFIX: str = Field(default="/api/v1", description="Prefix for versioned routes")
    ROLE_HEADER: str = Field(
        default="X-Actor-Role",
        description="Header carrying the acting role resolved by the auth gateway",
    )
    CORS_ORIGINS: list[str] = Field(
        default=["http://localhost:3000"],
        description="CORS allowed origins",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> Any:
        """Allow JSON arrays or comma-separated strings."""
        if isinstance(v, str):
            stripped = v.strip()
            if not stripped:
                return []
            if stripped.startswith("["):
                return json.loads(stripped)
            return [item.strip() for item in stripped.split(",") if item.strip()]
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("API_PREFIX")
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        """Prefix must start with a slash and carry no trailing slash."""
        v = v.rstrip("/")
        if v and not v.startswith("/"):
            v = f"/{v}"
        return v

    # =========================================================================
    # Helper Properties
    # =========================================================================
    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.ENVIRONMENT == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode"""
        return self.ENVIRONMENT == "testing"

    @property
    def is_sqlite(self) -> bool:
        """SQLite engines reject pool sizing arguments."""
        return self.DATABASE_URL.startswith("sqlite")

    @property
    def json_logs(self) -> bool:
        """Effective JSON logging flag."""
        if self.JSON_LOGS is None:
            return self.is_production
        return self.JSON_LOGS


@lru_cache
def get_settings() -> WorkflowSettings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded once and reused.
    Source: https://fastapi.tiangolo.com/advanced/settings/
    """
    return WorkflowSettings()
