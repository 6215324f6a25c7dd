"""Clock gate, credential generator, resource binder and the orchestrator that runs them."""

from .clock_gate import ClockGate, evaluate_epoch, parse_interval
from .credential_generator import CredentialGenerator, KeeperCache
from .dependency_graph import DependencyGraph
from .orchestrator import RotationOrchestrator
from .resource_binder import ResourceBinder, desired_fields, remaining_drift
from .state_machine import BindingStateMachine

__all__ = [
    "BindingStateMachine",
    "ClockGate",
    "CredentialGenerator",
    "DependencyGraph",
    "KeeperCache",
    "ResourceBinder",
    "RotationOrchestrator",
    "desired_fields",
    "evaluate_epoch",
    "parse_interval",
    "remaining_drift",
]
