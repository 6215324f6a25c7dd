"""
Factory Boy factories for rotation tables.

Each factory commits through the session bound with ``bind_factories``
so tests can arrange persisted state before exercising a service.
"""

from datetime import timedelta

import factory

from rotation_core.db import (
    BindingTransition,
    ReconciliationLock,
    RotationState,
    StoredSecret,
    utc_now,
)
from rotation_core.enums import BindingStateEnum, TransitionTypeEnum

# ==================== BASE FACTORIES ====================


class BaseFactory(factory.alchemy.SQLAlchemyModelFactory):
    """Base factory with common patterns."""

    class Meta:
        abstract = True
        sqlalchemy_session_persistence = "commit"


# ==================== ROTATION STATE FACTORIES ====================


class RotationStateFactory(BaseFactory):
    """A rotation record that has never been provisioned."""

    class Meta:
        model = RotationState

    id = factory.Faker("uuid4")
    spec_id = factory.Sequence(lambda n: f"spec-{n}")
    binding_state = BindingStateEnum.ABSENT.value


class StoredSecretFactory(BaseFactory):
    """
    A stored password.

    SQLite passes values through unencrypted, so ``secret_value`` is the
    password itself in tests.
    """

    class Meta:
        model = StoredSecret

    id = factory.Faker("uuid4")
    spec_id = "pg-main"
    epoch_id = 1
    secret_value = factory.Sequence(lambda n: f"Str0ng!Passw0rd-{n}")


class ReconciliationLockFactory(BaseFactory):
    """A live lock held by another process."""

    class Meta:
        model = ReconciliationLock

    spec_id = "pg-main"
    locked_by = "other-host:4242:deadbeef"
    locked_at = factory.LazyFunction(utc_now)
    expires_at = factory.LazyFunction(lambda: utc_now() + timedelta(minutes=15))
    attempt_count = 1


class ExpiredReconciliationLockFactory(ReconciliationLockFactory):
    """A lock abandoned by a crashed holder."""

    locked_at = factory.LazyFunction(lambda: utc_now() - timedelta(hours=2))
    expires_at = factory.LazyFunction(lambda: utc_now() - timedelta(hours=1))


class BindingTransitionFactory(BaseFactory):
    class Meta:
        model = BindingTransition

    id = factory.Faker("uuid4")
    spec_id = "pg-main"
    from_state = BindingStateEnum.ABSENT.value
    to_state = BindingStateEnum.PROVISIONED.value
    transition_type = TransitionTypeEnum.NORMAL.value
    epoch_id = 1
    created_at = factory.LazyFunction(utc_now)


# ==================== SESSION BINDING ====================

ALL_FACTORIES = [
    RotationStateFactory,
    StoredSecretFactory,
    ReconciliationLockFactory,
    ExpiredReconciliationLockFactory,
    BindingTransitionFactory,
]


def bind_factories(session):
    """Point every factory at the test session."""
    for factory_class in ALL_FACTORIES:
        factory_class._meta.sqlalchemy_session = session
