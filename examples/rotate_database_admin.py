"""
Daily administrator credential rotation example for the rotation core.

This module runs a week of hourly reconciliation passes for one PostgreSQL
server against the in-memory provisioning client, printing the plan each
time something has to change. Swap InMemoryProvisioningClient for a real
ProvisioningClient implementation to rotate an actual server.
"""

from datetime import datetime, timedelta, timezone

from rotation_core.db import DatabaseConfig, initialize_db
from rotation_core.provisioning import InMemoryProvisioningClient
from rotation_core.rotation import RotationOrchestrator
from rotation_core.schemas import (
    CredentialPolicy,
    LoginPolicy,
    ManagedResourceSpec,
    PasswordPolicy,
    RotationConfig,
)
from rotation_core.utils.json_utils import dumps
from rotation_core.utils.logger import configure_logging


def build_config() -> RotationConfig:
    """Describe the server and how its administrator credential rotates."""
    server = ManagedResourceSpec(
        spec_id="orders-db",
        address="postgresql_server.orders",
        fields={
            "location": "westeurope",
            "sku_name": "GP_Gen5_2",
            "version": "11",
            "storage_mb": 5120,
            "ssl_enforcement_enabled": True,
        },
        # The provider may move the server between zones
        ignore_fields={"zone"},
        force_new_fields={"location", "version"},
        depends_on=["resource_group.orders"],
    )
    policy = CredentialPolicy(
        login=LoginPolicy(length=12, forced_prefix="adm"),
        password=PasswordPolicy(length=32, override_special="!#$%&*()-_=+"),
    )
    return RotationConfig(interval="1d", policy=policy, resource=server)


def main() -> None:
    logger = configure_logging("rotate-database-admin", enable_queue=False)
    initialize_db(DatabaseConfig.in_memory())

    provisioning = InMemoryProvisioningClient(computed_fields={"zone": "1"})
    orchestrator = RotationOrchestrator(build_config(), provisioning)

    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    for hour in range(0, 24 * 7):
        now = start + timedelta(hours=hour)

        evaluation = orchestrator.evaluate(now)
        plan = orchestrator.plan(evaluation)
        if not plan.is_empty:
            print(dumps(plan.to_summary(), indent=2))

        result = orchestrator.apply(plan, evaluation)
        if result.applied:
            logger.info(
                "Rotation pass applied",
                extra={
                    "epoch_id": result.epoch_id,
                    "resource_id": result.bound_resource_id,
                    "login": result.last_known_good["login"],
                },
            )

    state = orchestrator.state_service.get_state("orders-db")
    logger.info(
        "Week complete",
        extra={
            "epoch_id": state.last_epoch_id,
            "binding_state": state.binding_state.value,
            "creates": len(provisioning.calls_of("create")),
        },
    )


if __name__ == "__main__":
    main()
