"""
Constants and enums for the rotation core framework.

This module centralizes all magic strings and constants used throughout
the framework to ensure consistency and maintainability.
"""

from enum import Enum


class QueueName(str, Enum):
    """Standard queue names used in the framework."""

    LOGS = "logs-queue"


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    AZURE_STORAGE_CONNECTION = "AzureWebJobsStorage"
    DATABASE_URL = "DATABASE_URL"
    APP_ENV = "APP_ENV"
    LOG_LEVEL = "LOG_LEVEL"
    ENABLE_LOGS_QUEUE = "ENABLE_LOGS_QUEUE"
    PROVISIONING_TIMEOUT = "PROVISIONING_TIMEOUT_SECONDS"
    LOCK_TTL = "RECONCILIATION_LOCK_TTL_SECONDS"
    ENCRYPTION_KEY = "ROTATION_ENCRYPTION_KEY"
    DEBUG = "DEBUG"


class NodeAddress(str, Enum):
    """Fixed graph addresses for the rotation tiers upstream of a resource."""

    EPOCH = "clock_gate.epoch"
    CREDENTIAL = "credential_generator.credential"


# Secret references are stored in place of password values
SECRET_REF_PREFIX = "secret:"

# Shown wherever a sensitive value would otherwise appear in plan output
SENSITIVE_PLACEHOLDER = "(sensitive)"

# Default symbol set for passwords; quote, slash, backslash and @ are left out
# because managed database servers reject them in admin passwords.
DEFAULT_SPECIAL_CHARACTERS = "!#$%&*()-_=+[]{}<>:?"


class Limits:
    """System limits and thresholds."""

    MAX_READ_ATTEMPTS = 3
    DEFAULT_TIMEOUT_SECONDS = 30
    MAX_TIMEOUT_SECONDS = 300
    DEFAULT_LOCK_TTL_SECONDS = 900
    MIN_LOGIN_LENGTH = 2
    MAX_LOGIN_LENGTH = 63
    MAX_PASSWORD_LENGTH = 128


class Timeouts:
    """Timeout values in seconds."""

    DATABASE_QUERY = 30
    PROVISIONING_CALL = 60
    SHUTDOWN_GRACE_PERIOD = 30
