"""Builders for the resources managed on the hub and spoke clusters."""

from .hub import WORKLOADS, default_images, hub_managed_kinds, hub_resources
from .spoke import operator_crd_label, spoke_managed_kinds, spoke_resources

__all__ = [
    "WORKLOADS",
    "default_images",
    "hub_managed_kinds",
    "hub_resources",
    "operator_crd_label",
    "spoke_managed_kinds",
    "spoke_resources",
]
