"""Provisioning API clients."""

from .base import ProvisioningClient
from .in_memory import InMemoryProvisioningClient

__all__ = ["ProvisioningClient", "InMemoryProvisioningClient"]
