"""
Enums used across the rotation_core package.

This module contains enum definitions that are used by multiple modules
to avoid circular import issues.
"""

import enum


class BindingStateEnum(str, enum.Enum):
    """Lifecycle of a managed resource's credential binding."""

    ABSENT = "ABSENT"
    PROVISIONED = "PROVISIONED"
    STALE = "STALE"
    DESTROYING = "DESTROYING"


class PlanActionType(str, enum.Enum):
    """Actions a plan can schedule for a graph node."""

    CREATE = "create"
    UPDATE_IN_PLACE = "update-in-place"
    DESTROY_THEN_CREATE = "destroy-then-create"


class NodeKind(str, enum.Enum):
    """Kinds of nodes in the rotation dependency graph."""

    EPOCH = "epoch"
    CREDENTIAL = "credential"
    RESOURCE = "resource"
    EXTERNAL = "external"


class TransitionTypeEnum(str, enum.Enum):
    """Types of binding state transitions."""

    NORMAL = "NORMAL"
    ERROR = "ERROR"
    RESUME = "RESUME"
    DRIFT = "DRIFT"
