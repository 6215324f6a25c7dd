"""Utility modules for the rotation core."""

# Logging utilities
from .logger import (
    AzureQueueHandler,
    ContextAwareLogger,
    ResourceContextFilter,
    configure_logging,
    get_logger,
)

# Generic CRUD helpers
from .crud_helpers import (
    create_record,
    delete_record,
    get_record,
    list_records,
)

# Encryption utilities
from .encryption_utils import (
    decrypt_password,
    decrypt_value,
    encrypt_password,
    encrypt_value,
)

# Hash and JSON utilities
from .hash_utils import calculate_data_hash, compare_fields
from .interval_utils import parse_interval
from .json_utils import dumps, loads

# Retry utilities
from .retry_utils import calculate_exponential_backoff, retry_read

__all__ = [
    # Logging utilities
    "AzureQueueHandler",
    "ContextAwareLogger",
    "ResourceContextFilter",
    "configure_logging",
    "get_logger",
    # Generic CRUD helpers
    "create_record",
    "get_record",
    "delete_record",
    "list_records",
    # Encryption utilities
    "encrypt_value",
    "decrypt_value",
    "encrypt_password",
    "decrypt_password",
    # Hash and JSON utilities
    "calculate_data_hash",
    "compare_fields",
    "parse_interval",
    "dumps",
    "loads",
    # Retry utilities
    "calculate_exponential_backoff",
    "retry_read",
]
