"""
Pydantic schemas for persisted rotation state and its transition history.

These provide typed read access to the rotation_state and
binding_transitions tables.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enums import BindingStateEnum, TransitionTypeEnum
from .rotation_schemas import Credential, Epoch


class RotationStateRead(BaseModel):
    """
    The persisted record for one managed resource.

    Password values are never part of this schema; only their references.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    spec_id: str
    binding_state: BindingStateEnum = BindingStateEnum.ABSENT
    last_epoch_id: Optional[int] = None
    last_epoch_created_at: Optional[datetime] = None
    current_login: Optional[str] = None
    current_password_ref: Optional[str] = None
    current_epoch_id: Optional[int] = None
    pending_login: Optional[str] = None
    pending_password_ref: Optional[str] = None
    pending_epoch_id: Optional[int] = None
    bound_resource_id: Optional[str] = None
    remote_state_cache: Optional[Dict[str, Any]] = None
    last_error: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime

    @property
    def last_epoch(self) -> Optional[Epoch]:
        if self.last_epoch_id is None or self.last_epoch_created_at is None:
            return None
        return Epoch(id=self.last_epoch_id, created_at=self.last_epoch_created_at)

    @property
    def has_pending_credential(self) -> bool:
        return self.pending_password_ref is not None

    def last_known_good(self) -> Dict[str, Any]:
        """The binding a caller can rely on after a failed pass."""
        return {
            "binding_state": self.binding_state.value,
            "login": self.current_login,
            "credential_epoch_id": self.current_epoch_id,
            "resource_id": self.bound_resource_id,
        }


class BindingTransitionRead(BaseModel):
    """One recorded binding state change."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    spec_id: str
    from_state: Optional[BindingStateEnum] = None
    to_state: BindingStateEnum
    transition_type: TransitionTypeEnum = TransitionTypeEnum.NORMAL
    epoch_id: Optional[int] = None
    action: Optional[str] = None
    reason: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
    created_at: datetime


class BindingTransitionCreate(BaseModel):
    """Input for recording a binding state change."""

    spec_id: str = Field(..., min_length=1)
    from_state: Optional[BindingStateEnum] = None
    to_state: BindingStateEnum
    transition_type: TransitionTypeEnum = TransitionTypeEnum.NORMAL
    epoch_id: Optional[int] = None
    action: Optional[str] = None
    reason: Optional[str] = None
    context: Optional[Dict[str, Any]] = None


class Evaluation(BaseModel):
    """
    Output of the evaluate step: the epoch and credential in force and the
    binding state they imply. Carries no password outside the Credential's
    SecretStr.
    """

    spec_id: str
    now: datetime
    epoch: Epoch
    previous_epoch: Optional[Epoch] = None
    advanced: bool = False
    credential: Credential
    current_credential: Optional[Credential] = None
    resumed: bool = Field(default=False, description="A pending credential was reused")
    stored_binding_state: BindingStateEnum = BindingStateEnum.ABSENT
    binding_state: BindingStateEnum = BindingStateEnum.ABSENT
    bound_resource_id: Optional[str] = None
