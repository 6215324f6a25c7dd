"""
Pydantic schemas for the rotation domain.

Epochs, credentials, policies, the managed resource description, remote
state snapshots and plans. These are plain data; the rules that act on
them live in rotation_core.rotation.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from ..config import get_config
from ..constants import Limits
from ..enums import BindingStateEnum, NodeKind, PlanActionType
from ..utils.hash_utils import calculate_data_hash
from ..utils.interval_utils import parse_interval


class Epoch(BaseModel):
    """One rotation interval. Superseded by the next epoch, never mutated."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1, description="Monotonic epoch counter")
    created_at: datetime = Field(..., description="Caller-supplied time the epoch began")

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """SQLite hands datetimes back naive; treat those as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class PasswordPolicy(BaseModel):
    """Character-class policy for generated passwords."""

    model_config = ConfigDict(frozen=True)

    length: int = Field(default=32, ge=1, le=Limits.MAX_PASSWORD_LENGTH)
    lower: bool = True
    upper: bool = True
    numeric: bool = True
    special: bool = True
    min_lower: int = Field(default=1, ge=0)
    min_upper: int = Field(default=1, ge=0)
    min_numeric: int = Field(default=1, ge=0)
    min_special: int = Field(default=1, ge=0)
    override_special: Optional[str] = Field(
        default=None, description="Replaces the default symbol set when given"
    )
    exclude_characters: str = Field(default="", description="Removed from every pool")


class LoginPolicy(BaseModel):
    """Policy for generated administrator logins: ``^[A-Za-z][A-Za-z0-9]{length-1}$``."""

    model_config = ConfigDict(frozen=True)

    length: int = Field(default=12, ge=1, le=Limits.MAX_LOGIN_LENGTH)
    upper: bool = True
    numeric: bool = True
    forced_prefix: Optional[str] = Field(
        default=None,
        description="Prepended when the raw random value does not start with a letter",
    )


class CredentialPolicy(BaseModel):
    """Login and password policies applied together."""

    model_config = ConfigDict(frozen=True)

    login: LoginPolicy = Field(default_factory=LoginPolicy)
    password: PasswordPolicy = Field(default_factory=PasswordPolicy)

    def fingerprint(self) -> str:
        """Stable hash of the policy, part of the generator's trigger key."""
        return calculate_data_hash(self.model_dump(mode="json"))


class Credential(BaseModel):
    """A generated (login, password) pair bound to the epoch that produced it."""

    model_config = ConfigDict(frozen=True)

    login: str
    password: SecretStr
    epoch_id: int = Field(..., ge=1)
    password_ref: Optional[str] = Field(
        default=None, description="Reference to the stored secret once recorded"
    )

    @property
    def fingerprint(self) -> str:
        """SHA-256 over login and password, safe to store on the remote resource."""
        return calculate_data_hash(
            {"login": self.login, "password": self.password.get_secret_value()}
        )

    def with_password_ref(self, password_ref: str) -> "Credential":
        return self.model_copy(update={"password_ref": password_ref})


class ManagedResourceSpec(BaseModel):
    """The declared target resource whose administrator credential is rotated."""

    model_config = ConfigDict(frozen=True)

    spec_id: str = Field(..., min_length=1, description="Stable identity used for locking and state")
    address: str = Field(..., min_length=1, description="Graph address, e.g. postgresql_server.main")
    resource_type: str = Field(default="postgresql_server")
    fields: Dict[str, Any] = Field(default_factory=dict, description="Desired non-credential fields")
    ignore_fields: Set[str] = Field(
        default_factory=set, description="Fields whose drift never triggers an action"
    )
    force_new_fields: Set[str] = Field(
        default_factory=set, description="Fields that can only change by replacement"
    )
    login_field: str = "administrator_login"
    password_field: str = "administrator_login_password"
    fingerprint_field: str = "credential_fingerprint"
    depends_on: List[str] = Field(
        default_factory=list, description="Addresses of externally managed upstream resources"
    )


class RemoteState(BaseModel):
    """Snapshot of a resource as reported by the provisioning API."""

    resource_id: str
    fields: Dict[str, Any] = Field(default_factory=dict)


class FieldChange(BaseModel):
    """Before/after pair for one field in a plan action."""

    before: Any = None
    after: Any = None


class PlanAction(BaseModel):
    """One scheduled change to a graph node."""

    address: str
    node_kind: NodeKind
    action: PlanActionType
    changes: Dict[str, FieldChange] = Field(default_factory=dict)
    reason: str = ""
    resource_id: Optional[str] = Field(default=None, description="Existing remote id, if any")
    credential_epoch_id: Optional[int] = None


class Plan(BaseModel):
    """Ordered actions computed before anything is applied."""

    spec_id: str
    epoch_id: Optional[int] = None
    credential_epoch_id: Optional[int] = None
    actions: List[PlanAction] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_empty(self) -> bool:
        return not self.actions

    def resource_action(self) -> Optional[PlanAction]:
        """The action scheduled for the managed resource, if any."""
        for action in self.actions:
            if action.node_kind == NodeKind.RESOURCE:
                return action
        return None

    def credential_action(self) -> Optional[PlanAction]:
        for action in self.actions:
            if action.node_kind == NodeKind.CREDENTIAL:
                return action
        return None

    def to_summary(self) -> Dict[str, Any]:
        """JSON-safe summary for review before apply. Never contains a password."""
        return {
            "spec_id": self.spec_id,
            "epoch_id": self.epoch_id,
            "credential_epoch_id": self.credential_epoch_id,
            "created_at": self.created_at.isoformat(),
            "actions": [
                {
                    "address": action.address,
                    "kind": action.node_kind.value,
                    "action": action.action.value,
                    "reason": action.reason,
                    "resource_id": action.resource_id,
                    "changes": {
                        name: change.model_dump(mode="json")
                        for name, change in action.changes.items()
                    },
                }
                for action in self.actions
            ],
        }


class ReconciliationResult(BaseModel):
    """Outcome of an apply step, reported to the caller."""

    spec_id: str
    success: bool
    binding_state: BindingStateEnum
    epoch_id: Optional[int] = None
    bound_resource_id: Optional[str] = None
    applied: List[PlanAction] = Field(default_factory=list)
    plan: Dict[str, Any] = Field(default_factory=dict)
    last_known_good: Dict[str, Any] = Field(default_factory=dict)
    failed_action: Optional[str] = None
    error: Optional[Dict[str, Any]] = None


class RotationConfig(BaseModel):
    """
    Immutable input for one reconciliation pass.

    Retry, timeout and lock settings default to the ambient
    ProcessingConfig so a caller only describes what to rotate and how often.
    """

    model_config = ConfigDict(frozen=True)

    interval: timedelta = Field(..., description="Rotation interval; there is no default cadence")
    policy: CredentialPolicy = Field(default_factory=CredentialPolicy)
    resource: ManagedResourceSpec
    provisioning_timeout_seconds: float = Field(
        default_factory=lambda: get_config().processing.provisioning_timeout, gt=0
    )
    max_read_attempts: int = Field(
        default_factory=lambda: get_config().processing.max_read_attempts, ge=1
    )
    retry_backoff_base: float = Field(
        default_factory=lambda: get_config().processing.retry_backoff_base, gt=0
    )
    retry_backoff_max: float = Field(
        default_factory=lambda: get_config().processing.retry_backoff_max, gt=0
    )
    lock_ttl_seconds: int = Field(
        default_factory=lambda: get_config().processing.lock_ttl_seconds, ge=1
    )

    @field_validator("interval", mode="before")
    @classmethod
    def parse_interval_literal(cls, v):
        """Accept shorthand and ISO-8601 interval literals."""
        return parse_interval(v)

    @property
    def spec_id(self) -> str:
        return self.resource.spec_id

