"""
Shared test fixtures.

Provides an SQLite in-memory database, a per-test session with fresh
tables, and the standard managed resource used across the suite.
"""

import random
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from sqlalchemy.orm import Session

from rotation_core.config import reset_config
from rotation_core.context.resource_context import ResourceContext
from rotation_core.db import (
    DatabaseConfig,
    DatabaseManager,
    import_all_models,
)
from rotation_core.db.db_config import Base, initialize_db, set_db_manager
from rotation_core.exceptions import clear_correlation_id
from rotation_core.provisioning import InMemoryProvisioningClient
from rotation_core.schemas import ManagedResourceSpec, RotationConfig
from rotation_core.utils.logger import reset_logging

T0 = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def db_config() -> DatabaseConfig:
    """Create SQLite in-memory database configuration for testing."""
    return DatabaseConfig.in_memory()


@pytest.fixture(scope="session")
def db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Create and initialize database manager with all models."""
    import_all_models()
    manager = initialize_db(db_config)
    yield manager
    set_db_manager(None)
    manager.close()


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Create a database session for each test.

    Tables are created before and dropped after every test so each test
    starts from an empty database.
    """
    Base.metadata.create_all(db_manager.engine)
    session = db_manager.get_session()

    yield session

    session.rollback()
    db_manager.close_session()
    Base.metadata.drop_all(db_manager.engine)


@pytest.fixture(autouse=True)
def clean_ambient_state():
    """Reset global config, logger and thread-local context between tests."""
    reset_config()
    reset_logging()
    yield
    ResourceContext.clear_current_spec()
    clear_correlation_id()
    reset_config()
    reset_logging()


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def resource_spec() -> ManagedResourceSpec:
    """A PostgreSQL server whose zone placement is chosen by the provider."""
    return ManagedResourceSpec(
        spec_id="pg-main",
        address="postgresql_server.main",
        resource_type="postgresql_server",
        fields={
            "location": "westeurope",
            "sku_name": "GP_Gen5_2",
            "version": "11",
            "storage_mb": 5120,
            "zone": "1",
        },
        ignore_fields={"zone"},
        force_new_fields={"location", "version"},
        depends_on=["resource_group.rotation"],
    )


@pytest.fixture
def rotation_config(resource_spec: ManagedResourceSpec) -> RotationConfig:
    return RotationConfig(
        interval="1d",
        resource=resource_spec,
        provisioning_timeout_seconds=5,
        max_read_attempts=3,
        retry_backoff_base=0.01,
        retry_backoff_max=0.05,
    )


@pytest.fixture
def provisioning() -> InMemoryProvisioningClient:
    return InMemoryProvisioningClient(computed_fields={"fqdn": "pg-main.postgres.example.net"})


@pytest.fixture
def seeded_rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def no_sleep() -> Mock:
    return Mock()


@pytest.fixture
def factories(db_session):
    """Bind all factories to the test session and return the session."""
    from tests.fixtures.factories import bind_factories

    bind_factories(db_session)
    return db_session
