"""
Multi-day rotation lifecycle against the in-memory provisioning client.

Drives hourly passes over several days, including an outage and a failed
replacement, and checks the invariants that must hold after every pass.
"""

from datetime import timedelta

import pytest

from rotation_core.db import StoredSecret
from rotation_core.enums import BindingStateEnum
from rotation_core.exceptions import ProvisioningFailedError, RemoteStateUnavailableError
from rotation_core.provisioning import InMemoryProvisioningClient
from rotation_core.rotation import RotationOrchestrator, remaining_drift
from rotation_core.schemas import ManagedResourceSpec, RotationConfig

HOUR = timedelta(hours=1)


@pytest.fixture
def orchestrator(db_session, rotation_config, provisioning, seeded_rng, no_sleep):
    return RotationOrchestrator(
        rotation_config, provisioning, session=db_session, rng=seeded_rng, sleep=no_sleep
    )


def _assert_settled(orchestrator, provisioning, db_session):
    state = orchestrator.state_service.get_state(orchestrator.spec_id)
    assert state.binding_state == BindingStateEnum.PROVISIONED
    assert provisioning.resource_ids == [state.bound_resource_id]
    assert not state.has_pending_credential

    current = orchestrator.state_service.load_credential(
        state.current_login, state.current_password_ref, state.current_epoch_id
    )
    remote = provisioning.read(state.bound_resource_id, 5)
    assert remaining_drift(orchestrator.config.resource, current, remote) == set()
    assert provisioning.password_for(state.bound_resource_id) == current.password.get_secret_value()
    assert db_session.query(StoredSecret).filter_by(spec_id=orchestrator.spec_id).count() == 1
    return state


def test_hourly_passes_rotate_once_a_day(orchestrator, provisioning, db_session, t0):
    logins = []
    for hour in range(0, 24 * 4, 6):
        orchestrator.run_pass(t0 + hour * HOUR)
        state = _assert_settled(orchestrator, provisioning, db_session)
        if not logins or logins[-1] != state.current_login:
            logins.append(state.current_login)

    assert len(logins) == 4
    assert len(set(logins)) == 4
    assert len(provisioning.calls_of("create")) == 4
    assert len(provisioning.calls_of("destroy")) == 3
    assert orchestrator.state_service.get_state("pg-main").last_epoch_id == 4


def test_recovers_from_outage_and_failed_replacement(orchestrator, provisioning, db_session, t0):
    orchestrator.run_pass(t0)
    first = _assert_settled(orchestrator, provisioning, db_session)

    provisioning.set_unreachable()
    with pytest.raises(RemoteStateUnavailableError):
        orchestrator.run_pass(t0 + 25 * HOUR)
    provisioning.set_unreachable(False)

    unchanged = orchestrator.state_service.get_state("pg-main")
    assert unchanged.current_login == first.current_login
    assert unchanged.binding_state == BindingStateEnum.PROVISIONED

    provisioning.fail_next("create")
    with pytest.raises(ProvisioningFailedError):
        orchestrator.run_pass(t0 + 26 * HOUR)
    staged = orchestrator.state_service.get_state("pg-main")
    assert staged.binding_state == BindingStateEnum.DESTROYING

    orchestrator.run_pass(t0 + 27 * HOUR)
    rotated = _assert_settled(orchestrator, provisioning, db_session)

    assert rotated.current_login == staged.pending_login
    assert rotated.current_login != first.current_login
    assert rotated.last_epoch_id == 2

    orchestrator.run_pass(t0 + 30 * HOUR)
    assert orchestrator.state_service.get_state("pg-main").current_login == rotated.current_login


def test_resources_rotate_independently(db_session, rotation_config, seeded_rng, no_sleep, t0):
    replica_spec = ManagedResourceSpec(
        spec_id="pg-replica",
        address="postgresql_server.replica",
        fields={"location": "northeurope", "sku_name": "GP_Gen5_2", "version": "11"},
        force_new_fields={"location", "version"},
    )
    replica_config = RotationConfig(
        interval="12h", resource=replica_spec, provisioning_timeout_seconds=5
    )
    main_client = InMemoryProvisioningClient()
    replica_client = InMemoryProvisioningClient()
    main = RotationOrchestrator(
        rotation_config, main_client, session=db_session, rng=seeded_rng, sleep=no_sleep
    )
    replica = RotationOrchestrator(
        replica_config, replica_client, session=db_session, rng=seeded_rng, sleep=no_sleep
    )

    for hour in (0, 13, 25):
        main.run_pass(t0 + hour * HOUR)
        replica.run_pass(t0 + hour * HOUR)

    assert main.state_service.get_state("pg-main").last_epoch_id == 2
    assert replica.state_service.get_state("pg-replica").last_epoch_id == 3
    assert len(main_client.calls_of("create")) == 2
    assert len(replica_client.calls_of("create")) == 3
    assert db_session.query(StoredSecret).count() == 2
