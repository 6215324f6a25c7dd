"""
Rotation orchestrator.

Runs one reconciliation pass for a managed resource as three separable
steps so a plan can be inspected before anything destructive happens:

    evaluation = orchestrator.evaluate(now)
    plan = orchestrator.plan(evaluation)
    result = orchestrator.apply(plan, evaluation)

run_pass() performs all three under the resource's lock.
"""

import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ..context.operation_context import operation
from ..context.resource_context import resource_aware
from ..enums import BindingStateEnum, NodeKind, PlanActionType, TransitionTypeEnum
from ..exceptions import (
    BaseError,
    ErrorCode,
    ProvisioningFailedError,
    RemoteStateUnavailableError,
    ValidationError,
)
from ..provisioning.base import ProvisioningClient
from ..schemas.rotation_schemas import (
    Credential,
    Plan,
    PlanAction,
    ReconciliationResult,
    RemoteState,
    RotationConfig,
)
from ..schemas.rotation_state_schemas import Evaluation, RotationStateRead
from ..services.reconciliation_lock_service import ReconciliationLockService
from ..services.rotation_state_service import RotationStateService
from ..utils.logger import get_logger
from ..utils.retry_utils import retry_read
from .clock_gate import ClockGate
from .credential_generator import CredentialGenerator
from .resource_binder import ResourceBinder, desired_fields
from .state_machine import BindingStateMachine

ABSENT = BindingStateEnum.ABSENT
PROVISIONED = BindingStateEnum.PROVISIONED
STALE = BindingStateEnum.STALE
DESTROYING = BindingStateEnum.DESTROYING


class RotationOrchestrator:
    """
    Clock gate -> credential generator -> resource binder -> provisioning API.

    Args:
        config: What to rotate and how often
        provisioning: Client for the provisioning API
        session: Optional session; one is created from the global database manager otherwise
        rng: Optional random source for the credential generator
        sleep: Called between read retries
        holder_id: Identifier recorded on the reconciliation lock
    """

    def __init__(
        self,
        config: RotationConfig,
        provisioning: ProvisioningClient,
        session: Optional[Session] = None,
        rng=None,
        sleep: Callable[[float], None] = time.sleep,
        holder_id: Optional[str] = None,
    ):
        self.config = config
        self.provisioning = provisioning
        self.spec_id = config.spec_id
        self.state_service = RotationStateService(session=session)
        self.lock_service = ReconciliationLockService(
            session=self.state_service.session,
            holder_id=holder_id,
            ttl_seconds=config.lock_ttl_seconds,
        )
        self.generator = CredentialGenerator(rng=rng)
        self.binder = ResourceBinder()
        self.sleep = sleep
        self.logger = get_logger()
        self._lock_held = False

    @property
    def timeout(self) -> float:
        return self.config.provisioning_timeout_seconds

    @contextmanager
    def _locked(self):
        if self._lock_held:
            yield
            return
        with self.lock_service.hold(self.spec_id):
            self._lock_held = True
            try:
                yield
            finally:
                self._lock_held = False

    # ==================== EVALUATE ====================

    @resource_aware
    @operation()
    def evaluate(self, now: datetime) -> Evaluation:
        """
        Decide the epoch and credential in force at ``now``.

        A pending credential left by a failed pass is reused when it belongs
        to the current epoch, so a resumed pass never generates a second one.
        """
        state = self.state_service.load_state(self.spec_id)
        policy = self.config.policy

        previous_epoch = state.last_epoch
        gate = ClockGate(self.config.interval, previous_epoch)
        epoch = gate.evaluate(now)

        current = self.state_service.load_credential(
            state.current_login, state.current_password_ref, state.current_epoch_id
        )
        if current is not None:
            self.generator.seed(current, policy)
            self.generator.cache.discard_before(current.epoch_id)

        pending = self.state_service.load_credential(
            state.pending_login, state.pending_password_ref, state.pending_epoch_id
        )
        resumed = pending is not None and pending.epoch_id == epoch.id
        if resumed:
            self.generator.seed(pending, policy)
            self.logger.info(
                "Resuming with pending credential",
                extra={"spec_id": self.spec_id, "epoch_id": epoch.id},
            )

        credential = self.generator.generate(epoch, policy)

        binding_state = state.binding_state
        if binding_state == PROVISIONED and not _same_credential(credential, current):
            binding_state = STALE

        return Evaluation(
            spec_id=self.spec_id,
            now=now,
            epoch=epoch,
            previous_epoch=previous_epoch,
            advanced=gate.advanced,
            credential=credential,
            current_credential=current,
            resumed=resumed,
            stored_binding_state=state.binding_state,
            binding_state=binding_state,
            bound_resource_id=state.bound_resource_id,
        )

    # ==================== PLAN ====================

    def refresh_remote_state(self, resource_id: Optional[str]) -> Optional[RemoteState]:
        """
        Read a resource, retrying only while the API is unreachable.

        Raises:
            RemoteStateUnavailableError: Once read attempts are exhausted
            ProvisioningFailedError: The read failed for any other reason
        """
        if not resource_id:
            return None

        def read() -> Optional[RemoteState]:
            try:
                return self.provisioning.read(resource_id, self.timeout)
            except (ProvisioningFailedError, RemoteStateUnavailableError):
                raise
            except Exception as e:
                raise ProvisioningFailedError(
                    "read", cause=e, spec_id=self.spec_id, resource_id=resource_id
                ) from e

        return retry_read(
            read,
            retry_on=(RemoteStateUnavailableError,),
            max_attempts=self.config.max_read_attempts,
            base_delay=self.config.retry_backoff_base,
            max_delay=self.config.retry_backoff_max,
            sleep=self.sleep,
            operation_name="provisioning.read",
        )

    @resource_aware
    @operation()
    def plan(self, evaluation: Evaluation) -> Plan:
        """Refresh remote state and reconcile it against the evaluated credential."""
        self._check_evaluation(evaluation)
        remote_state = self.refresh_remote_state(evaluation.bound_resource_id)
        plan = self.binder.reconcile(self.config.resource, evaluation.credential, remote_state)
        return plan.model_copy(update={"epoch_id": evaluation.epoch.id})

    # ==================== APPLY ====================

    @resource_aware
    @operation()
    def apply(self, plan: Plan, evaluation: Evaluation) -> ReconciliationResult:
        """
        Execute a plan in order and commit the pass.

        Raises:
            ProvisioningFailedError: A mutating call failed; the record keeps
                the state it had reached (DESTROYING mid-replacement)
            RemoteStateUnavailableError: The API could not be reached
            ReconciliationInProgressError: Another pass holds the lock
        """
        self._check_evaluation(evaluation)
        if plan.spec_id != self.spec_id:
            raise ValidationError(
                f"Plan for '{plan.spec_id}' cannot be applied to '{self.spec_id}'",
                field="spec_id",
                value=plan.spec_id,
            )

        with self._locked():
            return self._apply(plan, evaluation)

    def _apply(self, plan: Plan, evaluation: Evaluation) -> ReconciliationResult:
        state = self.state_service.load_state(self.spec_id)
        self._check_current(state, plan, evaluation)
        credential = evaluation.credential
        resource_id = state.bound_resource_id
        applied: List[PlanAction] = []
        action: Optional[PlanAction] = None

        try:
            if evaluation.binding_state == STALE and state.binding_state == PROVISIONED:
                state = self._transition(
                    state, STALE, epoch_id=evaluation.epoch.id, reason="credential epoch advanced"
                )

            for action in plan.actions:
                if action.node_kind == NodeKind.CREDENTIAL:
                    credential = self._stage_credential(credential)
                elif action.action == PlanActionType.CREATE:
                    state = self._prepare_create(state, action)
                    resource_id = self._create(credential)
                elif action.action == PlanActionType.DESTROY_THEN_CREATE:
                    state = self._prepare_replace(state, action, evaluation)
                    self._destroy_if_present(action.resource_id)
                    resource_id = self._create(credential)
                elif action.action == PlanActionType.UPDATE_IN_PLACE:
                    desired = desired_fields(self.config.resource, credential)
                    fields = {name: desired[name] for name in action.changes if name in desired}
                    self._mutate("update", self.provisioning.update, action.resource_id, fields, self.timeout)
                applied.append(action)

            state = self._finish(plan, evaluation, state, credential, resource_id)

        except (ProvisioningFailedError, RemoteStateUnavailableError) as e:
            self._record_failure(e, action)
            raise

        return ReconciliationResult(
            spec_id=self.spec_id,
            success=True,
            binding_state=state.binding_state,
            epoch_id=evaluation.epoch.id,
            bound_resource_id=state.bound_resource_id,
            applied=applied,
            plan=plan.to_summary(),
            last_known_good=state.last_known_good(),
        )

    def _stage_credential(self, credential: Credential) -> Credential:
        # A credential with a reference is already durable as current or pending
        if credential.password_ref is not None:
            return credential
        password_ref = self.state_service.store_secret(
            self.spec_id, credential.epoch_id, credential.password.get_secret_value()
        )
        credential = credential.with_password_ref(password_ref)
        self.state_service.stage_pending_credential(self.spec_id, credential)
        self.generator.seed(credential, self.config.policy)
        return credential

    def _prepare_create(self, state: RotationStateRead, action: PlanAction) -> RotationStateRead:
        bound = state.bound_resource_id
        if bound and self.refresh_remote_state(bound) is not None:
            raise ValidationError(
                f"Bound resource '{state.bound_resource_id}' still exists, "
                "refusing to create another",
                field="bound_resource_id",
                error_code=ErrorCode.PRECONDITION_FAILED,
                resource_id=state.bound_resource_id,
            )
        if state.binding_state == ABSENT:
            return state
        # The bound resource is gone: destroyed out of band, or by an interrupted replacement
        return self._transition(
            state,
            ABSENT,
            transition_type=TransitionTypeEnum.DRIFT,
            action=action.action.value,
            reason="resource not found remotely",
        )

    def _prepare_replace(
        self, state: RotationStateRead, action: PlanAction, evaluation: Evaluation
    ) -> RotationStateRead:
        if state.binding_state == PROVISIONED:
            state = self._transition(
                state,
                STALE,
                transition_type=TransitionTypeEnum.DRIFT,
                action=action.action.value,
                reason=action.reason,
            )
        resuming = state.binding_state == DESTROYING
        return self._transition(
            state,
            DESTROYING,
            transition_type=TransitionTypeEnum.RESUME if resuming else TransitionTypeEnum.NORMAL,
            epoch_id=evaluation.epoch.id,
            action=action.action.value,
            reason=action.reason,
            context={"resource_id": action.resource_id},
        )

    def _destroy_if_present(self, resource_id: Optional[str]) -> None:
        # Never destroy on the strength of the plan alone; confirm the resource is still there
        if self.refresh_remote_state(resource_id) is None:
            self.logger.info(
                "Resource already gone, skipping destroy",
                extra={"spec_id": self.spec_id, "resource_id": resource_id},
            )
            return
        self._mutate("destroy", self.provisioning.destroy, resource_id, self.timeout)

    def _create(self, credential: Credential) -> str:
        resource_id = self._mutate(
            "create",
            self.provisioning.create,
            self.config.resource,
            desired_fields(self.config.resource, credential),
            self.timeout,
        )
        self.state_service.record_bound_resource(self.spec_id, resource_id)
        return resource_id

    def _finish(
        self,
        plan: Plan,
        evaluation: Evaluation,
        state: RotationStateRead,
        credential: Credential,
        resource_id: Optional[str],
    ) -> RotationStateRead:
        settled = (
            plan.is_empty
            and state.binding_state == PROVISIONED
            and not state.has_pending_credential
            and state.last_epoch_id == evaluation.epoch.id
        )
        if settled:
            self.logger.info("Resource already up to date", extra={"spec_id": self.spec_id})
            return state

        if resource_id is None:
            raise ValidationError(
                "Plan left no bound resource to commit",
                error_code=ErrorCode.PRECONDITION_FAILED,
                field="bound_resource_id",
            )

        credential = self._stage_credential(credential)
        BindingStateMachine.validate(state.binding_state, PROVISIONED)
        resource_action = plan.resource_action()
        return self.state_service.commit_pass(
            self.spec_id,
            evaluation.epoch,
            credential,
            resource_id,
            self.refresh_remote_state(resource_id),
            action=resource_action.action.value if resource_action else None,
        )

    def _transition(
        self,
        state: RotationStateRead,
        to_state: BindingStateEnum,
        transition_type: TransitionTypeEnum = TransitionTypeEnum.NORMAL,
        epoch_id: Optional[int] = None,
        action: Optional[str] = None,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> RotationStateRead:
        BindingStateMachine.validate(state.binding_state, to_state)
        return self.state_service.set_binding_state(
            self.spec_id,
            to_state,
            transition_type=transition_type,
            epoch_id=epoch_id,
            action=action,
            reason=reason,
            context=context,
        )

    def _mutate(self, action: str, func: Callable[..., Any], *args: Any) -> Any:
        """Call a mutating API method once. Failures are wrapped, never retried."""
        try:
            return func(*args)
        except (ProvisioningFailedError, RemoteStateUnavailableError):
            raise
        except Exception as e:
            raise ProvisioningFailedError(action, cause=e, spec_id=self.spec_id) from e

    def _record_failure(self, error: BaseError, action: Optional[PlanAction]) -> None:
        error_info = {
            "action": action.action.value if action else None,
            "address": action.address if action else None,
            "cause": str(error.cause) if error.cause else error.message,
            "error_id": error.error_id,
            "error_code": error.error_code.value,
            "message": error.message,
        }
        state = self.state_service.record_failure(
            self.spec_id, error_info, action=error_info["action"]
        )
        last_known_good = state.last_known_good()
        if isinstance(error, ProvisioningFailedError):
            error.last_known_good.update(last_known_good)
        else:
            error.add_context(last_known_good=last_known_good, failed_action=error_info["action"])

    # ==================== FULL PASS ====================

    @resource_aware
    @operation()
    def run_pass(self, now: datetime) -> ReconciliationResult:
        """Evaluate, plan and apply while holding the resource's lock."""
        with self._locked():
            evaluation = self.evaluate(now)
            plan = self.plan(evaluation)
            return self.apply(plan, evaluation)

    def _check_evaluation(self, evaluation: Evaluation) -> None:
        if evaluation.spec_id != self.spec_id:
            raise ValidationError(
                f"Evaluation for '{evaluation.spec_id}' does not belong to '{self.spec_id}'",
                field="spec_id",
                value=evaluation.spec_id,
            )

    def _check_current(
        self, state: RotationStateRead, plan: Plan, evaluation: Evaluation
    ) -> None:
        """
        Refuse a plan computed against state that has since moved on.

        Raises:
            ValidationError: Another pass committed after this evaluation
        """
        previous_epoch_id = evaluation.previous_epoch.id if evaluation.previous_epoch else None
        expected = {
            "bound_resource_id": evaluation.bound_resource_id,
            "last_epoch_id": previous_epoch_id,
            "binding_state": evaluation.stored_binding_state,
        }
        found = {
            "bound_resource_id": state.bound_resource_id,
            "last_epoch_id": state.last_epoch_id,
            "binding_state": state.binding_state,
        }
        stale = {name for name in expected if expected[name] != found[name]}
        if plan.epoch_id is not None and plan.epoch_id != evaluation.epoch.id:
            stale.add("epoch_id")
        if stale:
            raise ValidationError(
                "Plan is stale: persisted rotation state changed since it was evaluated",
                field="evaluation",
                error_code=ErrorCode.PRECONDITION_FAILED,
                stale_fields=sorted(stale),
            )


def _same_credential(credential: Credential, other: Optional[Credential]) -> bool:
    if other is None:
        return False
    return credential.login == other.login and credential.fingerprint == other.fingerprint
