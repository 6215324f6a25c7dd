"""
Interface to the cloud provisioning API.

Reads are retry-safe. Create and destroy are not assumed idempotent: the
caller records an acknowledged create and re-reads before destroying.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..schemas.rotation_schemas import ManagedResourceSpec, RemoteState


class ProvisioningClient(ABC):
    """
    Create, read, update and destroy managed resources.

    Implementations raise RemoteStateUnavailableError when the API cannot be
    reached and ProvisioningFailedError when a mutating call is rejected.
    Every call takes the caller's timeout in seconds.
    """

    @abstractmethod
    def create(self, spec: ManagedResourceSpec, fields: Dict[str, Any], timeout: float) -> str:
        """Create the resource and return the id the API acknowledged."""

    @abstractmethod
    def read(self, resource_id: str, timeout: float) -> Optional[RemoteState]:
        """Return the resource's current state, or None if it does not exist."""

    @abstractmethod
    def update(self, resource_id: str, fields: Dict[str, Any], timeout: float) -> RemoteState:
        """Change updatable fields in place."""

    @abstractmethod
    def destroy(self, resource_id: str, timeout: float) -> None:
        """Delete the resource."""
