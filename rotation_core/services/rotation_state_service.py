"""
Service for the persisted rotation record of each managed resource.

Owns every write to rotation_state, stored_secrets and binding_transitions.
Each public write commits, so a crash between calls leaves a record that a
later pass can resume from.
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..config import get_config
from ..constants import SECRET_REF_PREFIX
from ..context.operation_context import operation
from ..db.db_rotation_models import BindingTransition, RotationState, StoredSecret
from ..enums import BindingStateEnum, TransitionTypeEnum
from ..exceptions import ErrorCode, SecretNotFoundError, ServiceError
from ..schemas.rotation_schemas import Credential, Epoch, RemoteState
from ..schemas.rotation_state_schemas import (
    BindingTransitionCreate,
    BindingTransitionRead,
    RotationStateRead,
)
from ..utils.crud_helpers import create_record, delete_record, get_record, list_records
from ..utils.encryption_utils import decrypt_password, encrypt_password
from .base_service import SessionManagedService


class RotationStateService(SessionManagedService):
    """
    Load, stage and commit rotation state.

    Passwords only ever reach the database through store_secret, encrypted
    with a per-resource key; everything else refers to them by reference.
    """

    def __init__(self, session: Optional[Session] = None, encryption_key: Optional[str] = None):
        super().__init__(session=session)
        self.encryption_key = encryption_key or get_config().security.encryption_key

    # ==================== STATE RECORD ====================

    def _get_record(self, spec_id: str) -> Optional[RotationState]:
        return get_record(self.session, RotationState, {"spec_id": spec_id})

    def _require_record(self, spec_id: str) -> RotationState:
        record = self._get_record(spec_id)
        if record is None:
            raise ServiceError(
                f"No rotation state for '{spec_id}'",
                error_code=ErrorCode.NOT_FOUND,
                operation="rotation_state",
                spec_id=spec_id,
            )
        return record

    def get_state(self, spec_id: str) -> Optional[RotationStateRead]:
        """Get the persisted state, or None if the resource was never evaluated."""
        record = self._get_record(spec_id)
        return RotationStateRead.model_validate(record) if record else None

    @operation()
    def load_state(self, spec_id: str) -> RotationStateRead:
        """Get the persisted state, creating an ABSENT record on first use."""
        record = self._get_record(spec_id)
        if record is None:
            record = create_record(
                self.session,
                RotationState,
                {"spec_id": spec_id, "binding_state": BindingStateEnum.ABSENT.value},
            )
            self.logger.info("Created rotation state record", extra={"spec_id": spec_id})
        return RotationStateRead.model_validate(record)

    # ==================== SECRETS ====================

    def store_secret(self, spec_id: str, epoch_id: int, password: str) -> str:
        """
        Encrypt and store a password.

        Returns:
            Reference of the form ``secret:<uuid>``
        """
        secret_id = str(uuid.uuid4())
        create_record(
            self.session,
            StoredSecret,
            {
                "id": secret_id,
                "spec_id": spec_id,
                "epoch_id": epoch_id,
                "secret_value": encrypt_password(
                    self.session, password, spec_id, self.encryption_key
                ),
            },
        )
        self.logger.info(
            "Stored credential secret",
            extra={"spec_id": spec_id, "epoch_id": epoch_id, "secret_id": secret_id},
        )
        return f"{SECRET_REF_PREFIX}{secret_id}"

    def _secret_for(self, password_ref: str) -> Optional[StoredSecret]:
        if not password_ref or not password_ref.startswith(SECRET_REF_PREFIX):
            return None
        return get_record(
            self.session, StoredSecret, {"id": password_ref[len(SECRET_REF_PREFIX) :]}
        )

    def resolve_secret(self, password_ref: str) -> str:
        """
        Decrypt the password behind a reference.

        Raises:
            SecretNotFoundError: If the reference is malformed or unknown
        """
        secret = self._secret_for(password_ref)
        if secret is None:
            raise SecretNotFoundError(
                f"Secret '{password_ref}' not found", password_ref=password_ref
            )
        password = decrypt_password(
            self.session, secret.secret_value, secret.spec_id, self.encryption_key
        )
        if password is None:
            raise SecretNotFoundError(
                f"Secret '{password_ref}' is empty", password_ref=password_ref
            )
        return password

    def delete_secret(self, password_ref: str, commit: bool = True) -> bool:
        """Delete a stored secret. Returns False if it does not exist."""
        secret = self._secret_for(password_ref)
        if secret is None:
            return False
        return delete_record(self.session, StoredSecret, secret.id, commit=commit)

    def load_credential(
        self, login: Optional[str], password_ref: Optional[str], epoch_id: Optional[int]
    ) -> Optional[Credential]:
        """Rebuild a Credential from persisted columns, or None if any part is missing."""
        if not login or not password_ref or epoch_id is None:
            return None
        return Credential(
            login=login,
            password=self.resolve_secret(password_ref),
            epoch_id=epoch_id,
            password_ref=password_ref,
        )

    # ==================== STAGED WRITES ====================

    @operation()
    def stage_pending_credential(self, spec_id: str, credential: Credential) -> RotationStateRead:
        """
        Record a credential ahead of the replacement that will use it.

        A previously staged credential that was never promoted is discarded
        together with its secret.
        """
        if credential.password_ref is None:
            raise ServiceError(
                "Credential must be stored before it is staged",
                error_code=ErrorCode.PRECONDITION_FAILED,
                operation="stage_pending_credential",
                spec_id=spec_id,
            )

        with self.transaction():
            record = self._require_record(spec_id)
            superseded = record.pending_password_ref
            if superseded and superseded not in (
                credential.password_ref,
                record.current_password_ref,
            ):
                self.delete_secret(superseded, commit=False)

            record.pending_login = credential.login
            record.pending_password_ref = credential.password_ref
            record.pending_epoch_id = credential.epoch_id

        self.logger.info(
            "Staged pending credential",
            extra={"spec_id": spec_id, "epoch_id": credential.epoch_id},
        )
        return RotationStateRead.model_validate(record)

    def set_binding_state(
        self,
        spec_id: str,
        to_state: BindingStateEnum,
        transition_type: TransitionTypeEnum = TransitionTypeEnum.NORMAL,
        epoch_id: Optional[int] = None,
        action: Optional[str] = None,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> RotationStateRead:
        """
        Persist a binding state change and its history entry in one commit.

        Transition validity is checked by the caller's state machine.
        """
        with self.transaction():
            record = self._require_record(spec_id)
            from_state = BindingStateEnum(record.binding_state)
            record.binding_state = to_state.value
            self.record_transition(
                BindingTransitionCreate(
                    spec_id=spec_id,
                    from_state=from_state,
                    to_state=to_state,
                    transition_type=transition_type,
                    epoch_id=epoch_id,
                    action=action,
                    reason=reason,
                    context=context,
                ),
                commit=False,
            )

        self.logger.info(
            f"Binding state {from_state.value} -> {to_state.value}",
            extra={"spec_id": spec_id, "transition_type": transition_type.value},
        )
        return RotationStateRead.model_validate(record)

    def record_bound_resource(self, spec_id: str, resource_id: str) -> RotationStateRead:
        """Record the id the provisioning API acknowledged for a newly created resource."""
        with self.transaction():
            record = self._require_record(spec_id)
            record.bound_resource_id = resource_id

        self.logger.info(
            "Recorded bound resource", extra={"spec_id": spec_id, "resource_id": resource_id}
        )
        return RotationStateRead.model_validate(record)

    @operation()
    def commit_pass(
        self,
        spec_id: str,
        epoch: Epoch,
        credential: Credential,
        resource_id: str,
        remote_state: Optional[RemoteState],
        action: Optional[str] = None,
    ) -> RotationStateRead:
        """
        Write the (last_epoch, current_credential, remote_state_cache) triple atomically.

        Promotes the credential to current, clears the pending slot and any
        recorded error, moves the binding to PROVISIONED and deletes the
        superseded secret, all in a single commit.
        """
        if credential.password_ref is None:
            raise ServiceError(
                "Credential must be stored before it is committed",
                error_code=ErrorCode.PRECONDITION_FAILED,
                operation="commit_pass",
                spec_id=spec_id,
            )

        with self.transaction():
            record = self._require_record(spec_id)
            from_state = BindingStateEnum(record.binding_state)
            superseded = [
                ref
                for ref in (record.current_password_ref, record.pending_password_ref)
                if ref and ref != credential.password_ref
            ]

            record.last_epoch_id = epoch.id
            record.last_epoch_created_at = epoch.created_at
            record.current_login = credential.login
            record.current_password_ref = credential.password_ref
            record.current_epoch_id = credential.epoch_id
            record.pending_login = None
            record.pending_password_ref = None
            record.pending_epoch_id = None
            record.bound_resource_id = resource_id
            record.remote_state_cache = remote_state.model_dump(mode="json") if remote_state else None
            record.last_error = None
            record.binding_state = BindingStateEnum.PROVISIONED.value

            for ref in superseded:
                self.delete_secret(ref, commit=False)

            self.record_transition(
                BindingTransitionCreate(
                    spec_id=spec_id,
                    from_state=from_state,
                    to_state=BindingStateEnum.PROVISIONED,
                    epoch_id=epoch.id,
                    action=action,
                    reason="apply completed",
                ),
                commit=False,
            )

        self.logger.info(
            "Committed rotation pass",
            extra={
                "spec_id": spec_id,
                "epoch_id": epoch.id,
                "credential_epoch_id": credential.epoch_id,
                "resource_id": resource_id,
            },
        )
        return RotationStateRead.model_validate(record)

    @operation()
    def record_failure(
        self, spec_id: str, error_info: Dict[str, Any], action: Optional[str] = None
    ) -> RotationStateRead:
        """
        Record a failed apply step.

        The binding state is left where the failure found it; the failure is
        appended to the history as an ERROR transition onto the same state.
        """
        with self.transaction():
            record = self._require_record(spec_id)
            state = BindingStateEnum(record.binding_state)
            record.last_error = error_info
            self.record_transition(
                BindingTransitionCreate(
                    spec_id=spec_id,
                    from_state=state,
                    to_state=state,
                    transition_type=TransitionTypeEnum.ERROR,
                    epoch_id=record.pending_epoch_id or record.current_epoch_id,
                    action=action,
                    reason=error_info.get("message"),
                    context=error_info,
                ),
                commit=False,
            )

        self.logger.warning(
            "Recorded failed rotation step",
            extra={"spec_id": spec_id, "action": action, "binding_state": state.value},
        )
        return RotationStateRead.model_validate(record)

    # ==================== HISTORY ====================

    def record_transition(
        self, data: BindingTransitionCreate, commit: bool = True
    ) -> Optional[BindingTransitionRead]:
        """Append a binding history entry. Returns None when history is disabled."""
        if not get_config().features.enable_transition_history:
            return None

        payload = data.model_dump()
        payload["from_state"] = data.from_state.value if data.from_state else None
        payload["to_state"] = data.to_state.value
        payload["transition_type"] = data.transition_type.value
        record = create_record(self.session, BindingTransition, payload, commit=commit)
        return BindingTransitionRead.model_validate(record)

    def list_transitions(
        self, spec_id: str, limit: Optional[int] = None
    ) -> List[BindingTransitionRead]:
        """History for one resource, oldest first."""
        records = list_records(
            self.session,
            BindingTransition,
            filters={"spec_id": spec_id},
            limit=limit,
            order_by="created_at",
        )
        return [BindingTransitionRead.model_validate(r) for r in records]
