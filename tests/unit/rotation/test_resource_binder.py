"""Tests for planning against remote state."""

import pytest

from rotation_core.constants import SENSITIVE_PLACEHOLDER, NodeAddress
from rotation_core.enums import NodeKind, PlanActionType
from rotation_core.exceptions import CyclicDependencyError
from rotation_core.rotation.resource_binder import (
    ResourceBinder,
    comparable_fields,
    desired_fields,
    remaining_drift,
)
from rotation_core.schemas import Credential, RemoteState
from rotation_core.utils.json_utils import dumps

RESOURCE_ID = "/postgresql_server/postgresql_server.main/1"


@pytest.fixture
def binder():
    return ResourceBinder()


@pytest.fixture
def credential():
    return Credential(login="adminAlpha", password="Alpha!Passw0rd", epoch_id=1)


@pytest.fixture
def rotated():
    return Credential(login="adminBravo", password="Bravo!Passw0rd", epoch_id=2)


def _remote(resource_spec, credential, **overrides):
    fields = comparable_fields(resource_spec, credential)
    fields["fqdn"] = "pg-main.postgres.example.net"
    fields.update(overrides)
    return RemoteState(resource_id=RESOURCE_ID, fields=fields)


class TestDesiredFields:
    def test_password_only_in_create_payload(self, resource_spec, credential):
        payload = desired_fields(resource_spec, credential)
        comparable = comparable_fields(resource_spec, credential)

        assert payload["administrator_login_password"] == "Alpha!Passw0rd"
        assert "administrator_login_password" not in comparable
        assert comparable["credential_fingerprint"] == credential.fingerprint
        assert comparable["administrator_login"] == "adminAlpha"

    def test_remaining_drift(self, resource_spec, credential):
        assert remaining_drift(resource_spec, credential, _remote(resource_spec, credential)) == set()
        assert "zone" not in remaining_drift(resource_spec, credential, None)


class TestBuildGraph:
    def test_order(self, binder, resource_spec):
        graph = binder.build_graph(resource_spec)
        assert graph.topological_order() == [
            NodeAddress.EPOCH.value,
            "resource_group.rotation",
            NodeAddress.CREDENTIAL.value,
            "postgresql_server.main",
        ]
        assert graph.kind("resource_group.rotation") == NodeKind.EXTERNAL

    def test_self_dependency_is_a_cycle(self, binder, resource_spec):
        spec = resource_spec.model_copy(update={"depends_on": ["postgresql_server.main"]})
        with pytest.raises(CyclicDependencyError):
            binder.build_graph(spec)

    def test_dependency_on_credential_tier_reuses_node(self, binder, resource_spec):
        spec = resource_spec.model_copy(update={"depends_on": [NodeAddress.CREDENTIAL.value]})
        graph = binder.build_graph(spec)
        assert graph.upstream_of("postgresql_server.main") == [NodeAddress.CREDENTIAL.value]


class TestReconcile:
    def test_nothing_remote_creates_everything(self, binder, resource_spec, credential):
        plan = binder.reconcile(resource_spec, credential, None)

        assert [a.address for a in plan.actions] == [
            NodeAddress.CREDENTIAL.value,
            "postgresql_server.main",
        ]
        assert all(a.action == PlanActionType.CREATE for a in plan.actions)
        assert plan.credential_epoch_id == 1
        resource = plan.resource_action()
        assert resource.changes["location"].after == "westeurope"
        assert resource.changes["administrator_login_password"].after == SENSITIVE_PLACEHOLDER

    def test_in_sync_is_empty(self, binder, resource_spec, credential):
        plan = binder.reconcile(resource_spec, credential, _remote(resource_spec, credential))
        assert plan.is_empty

    def test_rotated_credential_replaces(self, binder, resource_spec, credential, rotated):
        plan = binder.reconcile(resource_spec, rotated, _remote(resource_spec, credential))

        assert [a.action for a in plan.actions] == [
            PlanActionType.DESTROY_THEN_CREATE,
            PlanActionType.DESTROY_THEN_CREATE,
        ]
        resource = plan.resource_action()
        assert resource.resource_id == RESOURCE_ID
        assert resource.changes["administrator_login"].before == "adminAlpha"
        assert resource.changes["administrator_login"].after == "adminBravo"
        assert plan.credential_action().changes["administrator_login"].before == "adminAlpha"
        assert plan.credential_epoch_id == 2

    def test_password_only_change_detected_by_fingerprint(self, binder, resource_spec, credential):
        same_login = Credential(login="adminAlpha", password="Other!Passw0rd", epoch_id=2)
        plan = binder.reconcile(resource_spec, same_login, _remote(resource_spec, credential))
        assert plan.resource_action().action == PlanActionType.DESTROY_THEN_CREATE

    def test_ignored_drift_is_empty(self, binder, resource_spec, credential):
        plan = binder.reconcile(
            resource_spec, credential, _remote(resource_spec, credential, zone="3")
        )
        assert plan.is_empty

    def test_force_new_drift(self, binder, resource_spec, credential):
        plan = binder.reconcile(
            resource_spec, credential, _remote(resource_spec, credential, location="northeurope")
        )

        assert plan.credential_action() is None
        resource = plan.resource_action()
        assert resource.action == PlanActionType.DESTROY_THEN_CREATE
        assert resource.reason == "forces replacement: location"

    def test_update_in_place(self, binder, resource_spec, credential):
        plan = binder.reconcile(
            resource_spec, credential, _remote(resource_spec, credential, sku_name="GP_Gen5_4")
        )

        resource = plan.resource_action()
        assert resource.action == PlanActionType.UPDATE_IN_PLACE
        assert list(resource.changes) == ["sku_name"]
        assert resource.changes["sku_name"].before == "GP_Gen5_4"
        assert resource.changes["sku_name"].after == "GP_Gen5_2"

    def test_provider_computed_fields_are_not_drift(self, binder, resource_spec, credential):
        remote = _remote(resource_spec, credential, fqdn="elsewhere.example.net")
        assert binder.reconcile(resource_spec, credential, remote).is_empty

    def test_summary_never_contains_password(self, binder, resource_spec, credential, rotated):
        plan = binder.reconcile(resource_spec, rotated, _remote(resource_spec, credential))
        summary = dumps(plan.to_summary())

        assert "Bravo!Passw0rd" not in summary
        assert "Alpha!Passw0rd" not in summary
        assert rotated.fingerprint not in summary
        assert SENSITIVE_PLACEHOLDER in summary
