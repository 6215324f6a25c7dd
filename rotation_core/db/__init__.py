"""
SQLAlchemy models and database management for rotation state.

This module provides a common entry point for all models.
"""

from .db_base import (
    JSON,
    EncryptedBinary,
    RecordMixin,
    utc_now,
)
from .db_config import (
    Base,
    DatabaseConfig,
    DatabaseManager,
    close_db,
    get_db_manager,
    import_all_models,
    initialize_db,
    set_db_manager,
)
from .db_rotation_models import (
    BindingTransition,
    ReconciliationLock,
    RotationState,
    StoredSecret,
)

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "EncryptedBinary",
    "RecordMixin",
    "utc_now",
    # Configuration
    "DatabaseConfig",
    "DatabaseManager",
    "close_db",
    "get_db_manager",
    "import_all_models",
    "initialize_db",
    "set_db_manager",
    # Models
    "BindingTransition",
    "ReconciliationLock",
    "RotationState",
    "StoredSecret",
]
