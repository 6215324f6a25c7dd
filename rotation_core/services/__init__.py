"""Services for rotation state, secrets and reconciliation locks."""

from .base_service import SessionManagedService
from .reconciliation_lock_service import ReconciliationLockService, default_holder_id
from .rotation_state_service import RotationStateService

__all__ = [
    "SessionManagedService",
    "ReconciliationLockService",
    "RotationStateService",
    "default_holder_id",
]
