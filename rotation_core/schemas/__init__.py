"""Pydantic schemas for the rotation domain and persisted state."""

from .rotation_schemas import (
    Credential,
    CredentialPolicy,
    Epoch,
    FieldChange,
    LoginPolicy,
    ManagedResourceSpec,
    PasswordPolicy,
    Plan,
    PlanAction,
    ReconciliationResult,
    RemoteState,
    RotationConfig,
)
from .rotation_state_schemas import (
    BindingTransitionCreate,
    BindingTransitionRead,
    Evaluation,
    RotationStateRead,
)

__all__ = [
    "BindingTransitionCreate",
    "BindingTransitionRead",
    "Credential",
    "CredentialPolicy",
    "Evaluation",
    "Epoch",
    "FieldChange",
    "LoginPolicy",
    "ManagedResourceSpec",
    "PasswordPolicy",
    "Plan",
    "PlanAction",
    "ReconciliationResult",
    "RemoteState",
    "RotationConfig",
    "RotationStateRead",
]
