"""
Dict-backed provisioning client.

Used by the example script and the tests. Supports injected failures,
out-of-band drift, an unreachable mode and a call log.
"""

import copy
import itertools
from collections import defaultdict, deque
from typing import Any, Deque, Dict, List, Optional, Tuple

from ..exceptions import ProvisioningFailedError, RemoteStateUnavailableError
from ..schemas.rotation_schemas import ManagedResourceSpec, RemoteState
from ..utils.logger import get_logger
from .base import ProvisioningClient

OPERATIONS = ("create", "read", "update", "destroy")


class InMemoryProvisioningClient(ProvisioningClient):
    """
    Keeps resources in a dict keyed by resource id.

    Args:
        computed_fields: Values the "provider" assigns on create when the
            caller does not supply them, e.g. an availability zone
    """

    def __init__(self, computed_fields: Optional[Dict[str, Any]] = None):
        self.computed_fields = dict(computed_fields or {})
        self.unreachable = False
        self.calls: List[Tuple[str, str, float]] = []
        self._resources: Dict[str, Dict[str, Any]] = {}
        self._passwords: Dict[str, str] = {}
        self._password_fields: Dict[str, str] = {}
        self._failures: Dict[str, Deque[Optional[Exception]]] = defaultdict(deque)
        self._ids = itertools.count(1)
        self.logger = get_logger()

    # ==================== TEST CONTROLS ====================

    def fail_next(self, operation: str, error: Optional[Exception] = None) -> None:
        """
        Make the next call of ``operation`` raise ``error``.

        Without an error, a ProvisioningFailedError for that operation is raised.
        Calls queue up: failing twice needs two fail_next calls.
        """
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation '{operation}'")
        self._failures[operation].append(error)

    def set_unreachable(self, unreachable: bool = True) -> None:
        self.unreachable = unreachable

    def set_remote_field(self, resource_id: str, field: str, value: Any) -> None:
        """Simulate out-of-band drift."""
        self._resources[resource_id][field] = value

    def password_for(self, resource_id: str) -> Optional[str]:
        """The password last written to a resource; never returned by read()."""
        return self._passwords.get(resource_id)

    @property
    def resource_ids(self) -> List[str]:
        return list(self._resources)

    def calls_of(self, operation: str) -> List[Tuple[str, str, float]]:
        return [call for call in self.calls if call[0] == operation]

    # ==================== CLIENT ====================

    def _enter(self, operation: str, target: str, timeout: float) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.calls.append((operation, target, timeout))
        if self.unreachable:
            raise RemoteStateUnavailableError(
                "Provisioning API unreachable", operation=operation, target=target
            )
        if self._failures[operation]:
            error = self._failures[operation].popleft()
            if error is None:
                error = ProvisioningFailedError(
                    operation, message=f"Injected {operation} failure", target=target
                )
            raise error

    def _snapshot(self, resource_id: str) -> RemoteState:
        fields = copy.deepcopy(self._resources[resource_id])
        return RemoteState(resource_id=resource_id, fields=fields)

    def create(self, spec: ManagedResourceSpec, fields: Dict[str, Any], timeout: float) -> str:
        self._enter("create", spec.address, timeout)

        resource_id = f"/{spec.resource_type}/{spec.address}/{next(self._ids)}"
        stored = {**self.computed_fields, **copy.deepcopy(fields)}
        password = stored.pop(spec.password_field, None)
        if password is not None:
            self._passwords[resource_id] = password
        self._password_fields[resource_id] = spec.password_field
        self._resources[resource_id] = stored

        self.logger.debug("In-memory resource created", extra={"resource_id": resource_id})
        return resource_id

    def read(self, resource_id: str, timeout: float) -> Optional[RemoteState]:
        self._enter("read", resource_id, timeout)
        if resource_id not in self._resources:
            return None
        return self._snapshot(resource_id)

    def update(self, resource_id: str, fields: Dict[str, Any], timeout: float) -> RemoteState:
        self._enter("update", resource_id, timeout)
        if resource_id not in self._resources:
            raise ProvisioningFailedError(
                "update", message=f"Resource '{resource_id}' not found", resource_id=resource_id
            )

        changes = copy.deepcopy(fields)
        password_field = self._password_fields.get(resource_id)
        if password_field and password_field in changes:
            self._passwords[resource_id] = changes.pop(password_field)
        self._resources[resource_id].update(changes)
        return self._snapshot(resource_id)

    def destroy(self, resource_id: str, timeout: float) -> None:
        self._enter("destroy", resource_id, timeout)
        if resource_id not in self._resources:
            raise ProvisioningFailedError(
                "destroy", message=f"Resource '{resource_id}' not found", resource_id=resource_id
            )
        del self._resources[resource_id]
        self._passwords.pop(resource_id, None)
        self._password_fields.pop(resource_id, None)
