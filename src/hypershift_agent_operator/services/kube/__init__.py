"""Kubernetes clients for the hub and spoke clusters."""

from .base import KubeClient, SpokeClient
from .client import LiveKubeClient, create_hub_client, create_spoke_client
from .memory import InMemoryKubeClient

__all__ = [
    "KubeClient",
    "SpokeClient",
    "LiveKubeClient",
    "InMemoryKubeClient",
    "create_hub_client",
    "create_spoke_client",
]
