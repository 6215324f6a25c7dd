"""Allowed binding state transitions."""

from typing import Dict, FrozenSet

from ..enums import BindingStateEnum
from ..exceptions import InvalidStateTransitionError

ABSENT = BindingStateEnum.ABSENT
PROVISIONED = BindingStateEnum.PROVISIONED
STALE = BindingStateEnum.STALE
DESTROYING = BindingStateEnum.DESTROYING


class BindingStateMachine:
    """
    Validates moves between ABSENT, PROVISIONED, STALE and DESTROYING.

    Self-transitions are allowed only where a pass can legitimately end
    where it started: a PROVISIONED resource that was updated in place, and
    a DESTROYING resource whose replacement is retried.
    """

    TRANSITIONS: Dict[BindingStateEnum, FrozenSet[BindingStateEnum]] = {
        ABSENT: frozenset({PROVISIONED}),
        PROVISIONED: frozenset({STALE, PROVISIONED, ABSENT}),
        STALE: frozenset({DESTROYING, ABSENT, PROVISIONED}),
        DESTROYING: frozenset({PROVISIONED, DESTROYING, ABSENT}),
    }

    @classmethod
    def can_transition(cls, from_state: BindingStateEnum, to_state: BindingStateEnum) -> bool:
        return to_state in cls.TRANSITIONS.get(from_state, frozenset())

    @classmethod
    def validate(cls, from_state: BindingStateEnum, to_state: BindingStateEnum) -> None:
        """
        Raises:
            InvalidStateTransitionError: If the move is not allowed
        """
        if not cls.can_transition(from_state, to_state):
            raise InvalidStateTransitionError(
                f"Cannot move binding from {from_state.value} to {to_state.value}",
                from_state=from_state.value,
                to_state=to_state.value,
            )
