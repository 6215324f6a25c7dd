"""
Dependent resource binder.

Compares the desired managed resource (declared fields plus the current
credential) against the state the provisioning API reports and emits an
ordered Plan. Nothing here calls the API; applying a plan is the
orchestrator's job.
"""

from typing import Any, Dict, List, Optional, Set

from ..constants import SENSITIVE_PLACEHOLDER, NodeAddress
from ..enums import NodeKind, PlanActionType
from ..schemas.rotation_schemas import (
    Credential,
    FieldChange,
    ManagedResourceSpec,
    Plan,
    PlanAction,
    RemoteState,
)
from ..utils.hash_utils import compare_fields
from ..utils.logger import get_logger
from .dependency_graph import DependencyGraph


def desired_fields(spec: ManagedResourceSpec, credential: Credential) -> Dict[str, Any]:
    """Full payload for ``create``, password included."""
    fields = comparable_fields(spec, credential)
    fields[spec.password_field] = credential.password.get_secret_value()
    return fields


def comparable_fields(spec: ManagedResourceSpec, credential: Credential) -> Dict[str, Any]:
    """Desired fields that a read can report back; the password never comes back."""
    fields = dict(spec.fields)
    fields[spec.login_field] = credential.login
    fields[spec.fingerprint_field] = credential.fingerprint
    return fields


def remaining_drift(
    spec: ManagedResourceSpec, credential: Credential, remote_state: Optional[RemoteState]
) -> Set[str]:
    """Desired fields that still differ from remote state, ignoring the ignore-set."""
    desired = comparable_fields(spec, credential)
    if remote_state is None:
        return set(desired) - set(spec.ignore_fields)
    return set(
        compare_fields(
            remote_state.fields,
            desired,
            key_fields=desired.keys(),
            ignore_fields=spec.ignore_fields,
        )
    )


class ResourceBinder:
    """Build the dependency graph for a resource and reconcile it into a Plan."""

    def __init__(self):
        self.logger = get_logger()

    def build_graph(self, spec: ManagedResourceSpec) -> DependencyGraph:
        """
        Epoch -> credential -> resource, plus declared external upstreams.

        Raises:
            CyclicDependencyError: If the declared dependencies form a cycle
        """
        graph = DependencyGraph()
        graph.add_node(NodeAddress.EPOCH.value, NodeKind.EPOCH)
        graph.add_node(NodeAddress.CREDENTIAL.value, NodeKind.CREDENTIAL)
        graph.add_edge(NodeAddress.EPOCH.value, NodeAddress.CREDENTIAL.value)

        graph.add_node(spec.address, NodeKind.RESOURCE)
        graph.add_edge(NodeAddress.CREDENTIAL.value, spec.address)
        for upstream in spec.depends_on:
            if upstream not in graph.nodes:
                graph.add_node(upstream, NodeKind.EXTERNAL)
            graph.add_edge(upstream, spec.address)

        # Fail at construction, not at apply time
        graph.topological_order()
        return graph

    def _masked(self, spec: ManagedResourceSpec, changes: Dict[str, FieldChange]) -> Dict[str, FieldChange]:
        for name in (spec.password_field, spec.fingerprint_field):
            if name in changes:
                changes[name] = FieldChange(
                    before=SENSITIVE_PLACEHOLDER if changes[name].before is not None else None,
                    after=SENSITIVE_PLACEHOLDER,
                )
        return changes

    def _credential_changes(self, spec: ManagedResourceSpec, credential: Credential, before: Optional[str]):
        return {
            spec.login_field: FieldChange(before=before, after=credential.login),
            spec.password_field: FieldChange(
                before=SENSITIVE_PLACEHOLDER if before is not None else None,
                after=SENSITIVE_PLACEHOLDER,
            ),
        }

    def reconcile(
        self,
        spec: ManagedResourceSpec,
        credential: Credential,
        remote_state: Optional[RemoteState],
    ) -> Plan:
        """
        Decide what must happen for the remote resource to match the desired one.

        Raises:
            CyclicDependencyError: If the dependency graph is not acyclic
        """
        graph = self.build_graph(spec)
        desired = comparable_fields(spec, credential)
        ignored = set(spec.ignore_fields)
        actions: Dict[str, PlanAction] = {}

        if remote_state is None:
            actions[NodeAddress.CREDENTIAL.value] = PlanAction(
                address=NodeAddress.CREDENTIAL.value,
                node_kind=NodeKind.CREDENTIAL,
                action=PlanActionType.CREATE,
                changes=self._credential_changes(spec, credential, None),
                reason="no credential bound",
                credential_epoch_id=credential.epoch_id,
            )
            changes = {
                name: FieldChange(before=None, after=value) for name, value in desired.items()
            }
            changes[spec.password_field] = FieldChange(before=None, after=SENSITIVE_PLACEHOLDER)
            actions[spec.address] = PlanAction(
                address=spec.address,
                node_kind=NodeKind.RESOURCE,
                action=PlanActionType.CREATE,
                changes=self._masked(spec, changes),
                reason="resource does not exist",
                credential_epoch_id=credential.epoch_id,
            )
        else:
            drift = compare_fields(
                remote_state.fields, desired, key_fields=desired.keys(), ignore_fields=ignored
            )
            changes = {
                name: FieldChange(before=before, after=after)
                for name, (before, after) in drift.items()
            }
            identity_changed = spec.login_field in drift or spec.fingerprint_field in drift
            force_new = sorted(set(drift) & set(spec.force_new_fields))

            if identity_changed:
                actions[NodeAddress.CREDENTIAL.value] = PlanAction(
                    address=NodeAddress.CREDENTIAL.value,
                    node_kind=NodeKind.CREDENTIAL,
                    action=PlanActionType.DESTROY_THEN_CREATE,
                    changes=self._credential_changes(
                        spec, credential, remote_state.fields.get(spec.login_field)
                    ),
                    reason="credential rotated",
                    credential_epoch_id=credential.epoch_id,
                )
                changes[spec.password_field] = FieldChange(
                    before=SENSITIVE_PLACEHOLDER, after=SENSITIVE_PLACEHOLDER
                )
                actions[spec.address] = PlanAction(
                    address=spec.address,
                    node_kind=NodeKind.RESOURCE,
                    action=PlanActionType.DESTROY_THEN_CREATE,
                    changes=self._masked(spec, changes),
                    reason="administrator identity cannot be updated in place",
                    resource_id=remote_state.resource_id,
                    credential_epoch_id=credential.epoch_id,
                )
            elif force_new:
                actions[spec.address] = PlanAction(
                    address=spec.address,
                    node_kind=NodeKind.RESOURCE,
                    action=PlanActionType.DESTROY_THEN_CREATE,
                    changes=self._masked(spec, changes),
                    reason=f"forces replacement: {', '.join(force_new)}",
                    resource_id=remote_state.resource_id,
                    credential_epoch_id=credential.epoch_id,
                )
            elif drift:
                actions[spec.address] = PlanAction(
                    address=spec.address,
                    node_kind=NodeKind.RESOURCE,
                    action=PlanActionType.UPDATE_IN_PLACE,
                    changes=changes,
                    reason=f"drift in: {', '.join(sorted(drift))}",
                    resource_id=remote_state.resource_id,
                    credential_epoch_id=credential.epoch_id,
                )

        ordered: List[PlanAction] = [
            actions[address] for address in graph.topological_order() if address in actions
        ]
        plan = Plan(
            spec_id=spec.spec_id,
            epoch_id=credential.epoch_id,
            credential_epoch_id=credential.epoch_id,
            actions=ordered,
        )

        self.logger.info(
            "Reconciled resource",
            extra={
                "spec_id": spec.spec_id,
                "address": spec.address,
                "actions": [f"{a.address}:{a.action.value}" for a in ordered] or "none",
            },
        )
        return plan
