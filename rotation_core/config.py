"""
Centralized configuration management for the rotation core framework.

This module provides the ambient configuration layer:
- Environment variables
- Feature flags
- Retry and timeout defaults for reconciliation passes
- Validation using Pydantic

The per-pass RotationConfig lives in schemas.rotation_schemas and is passed
explicitly into the orchestrator rather than read from here.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .constants import EnvironmentVariable, Limits, LogLevel, QueueName


class QueueConfig(BaseModel):
    """Queue configuration for Azure Storage Queues."""

    connection_string: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.AZURE_STORAGE_CONNECTION.value, ""),
        description="Azure Storage connection string",
    )
    logs_queue_name: str = Field(default=QueueName.LOGS.value, description="Log shipping queue")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_LEVEL.value, LogLevel.INFO.value),
        description="Logging level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class FeatureFlags(BaseModel):
    """Feature flags for controlling framework behavior."""

    enable_logs_queue: bool = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.ENABLE_LOGS_QUEUE.value, "false").lower()
        == "true",
        description="Ship structured logs to an Azure Storage Queue",
    )
    enable_transition_history: bool = Field(
        default=True, description="Record every binding state transition"
    )


class ProcessingConfig(BaseModel):
    """Defaults for reconciliation passes."""

    max_read_attempts: int = Field(
        default=Limits.MAX_READ_ATTEMPTS, ge=1, description="Attempts for read-only refreshes"
    )
    retry_backoff_base: float = Field(default=1.0, gt=0, description="Backoff base (seconds)")
    retry_backoff_max: float = Field(default=30.0, gt=0, description="Backoff cap (seconds)")
    provisioning_timeout: float = Field(
        default_factory=lambda: float(
            os.getenv(
                EnvironmentVariable.PROVISIONING_TIMEOUT.value, Limits.DEFAULT_TIMEOUT_SECONDS
            )
        ),
        gt=0,
        le=Limits.MAX_TIMEOUT_SECONDS,
        description="Timeout passed to every provisioning call (seconds)",
    )
    lock_ttl_seconds: int = Field(
        default_factory=lambda: int(
            os.getenv(EnvironmentVariable.LOCK_TTL.value, Limits.DEFAULT_LOCK_TTL_SECONDS)
        ),
        ge=1,
        description="Seconds before an abandoned reconciliation lock may be taken over",
    )


class SecurityConfig(BaseModel):
    """Security-related configuration."""

    encryption_key: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.ENCRYPTION_KEY.value, "rotation-core"),
        description="Symmetric key prefix for pgcrypto password encryption",
    )


class AppConfig(BaseModel):
    """Main application configuration."""

    environment: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.APP_ENV.value, "development"),
        description="Application environment",
    )
    debug: bool = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.DEBUG.value, "false").lower()
        == "true",
        description="Debug mode",
    )

    # Sub-configurations
    queue: QueueConfig = Field(default_factory=QueueConfig, description="Queue configuration")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    features: FeatureFlags = Field(default_factory=FeatureFlags, description="Feature flags")
    security: SecurityConfig = Field(
        default_factory=SecurityConfig, description="Security configuration"
    )
    processing: ProcessingConfig = Field(
        default_factory=ProcessingConfig, description="Processing configuration"
    )

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
