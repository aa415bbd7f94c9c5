"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from ..constants import (
    COND_DEPLOYMENTS_HEALTHY,
    COND_RECONCILE_COMPLETED,
    REASON_DEPLOYMENTS_HEALTHY,
    REASON_DEPLOYMENTS_NOT_HEALTHY,
    REASON_DEPLOYMENTS_STATUS_UNKNOWN,
    REASON_RECONCILE_SUCCEEDED,
)

STATUS_TRUE = "True"
STATUS_FALSE = "False"
STATUS_UNKNOWN = "Unknown"


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        observed_generation: Generation when condition was observed

    Returns:
        Updated list of conditions
    """
    now = datetime.now(timezone.utc).isoformat()

    existing_idx = None
    for idx, cond in enumerate(conditions):
        if cond.get("type") == condition_type:
            existing_idx = idx
            break

    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }

    if observed_generation is not None:
        new_condition["observedGeneration"] = observed_generation

    if existing_idx is not None:
        existing = conditions[existing_idx]
        # Only update lastTransitionTime if status changed
        if existing.get("status") == status:
            new_condition["lastTransitionTime"] = existing.get("lastTransitionTime", now)
        conditions[existing_idx] = new_condition
    else:
        conditions.append(new_condition)

    return conditions


def find_condition(conditions: Iterable[dict[str, Any]], condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, if present."""
    for cond in conditions:
        if cond.get("type") == condition_type:
            return cond
    return None


def set_reconcile_completed_condition(
    conditions: list[dict[str, Any]],
    status: bool,
    reason: str = REASON_RECONCILE_SUCCEEDED,
    message: str = "All resources reconciled",
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the ReconcileCompleted condition."""
    return update_condition(
        conditions,
        COND_RECONCILE_COMPLETED,
        STATUS_TRUE if status else STATUS_FALSE,
        reason,
        message,
        observed_generation,
    )


def set_deployments_healthy_condition(
    conditions: list[dict[str, Any]],
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the DeploymentsHealthy condition."""
    return update_condition(
        conditions,
        COND_DEPLOYMENTS_HEALTHY,
        status,
        reason,
        message,
        observed_generation,
    )


def workload_ready(workload: dict[str, Any]) -> bool:
    """Check whether a Deployment or StatefulSet has all replicas ready."""
    desired = workload.get("spec", {}).get("replicas", 1)
    status = workload.get("status") or {}
    return status.get("replicas", 0) == desired and status.get("readyReplicas", 0) == desired


def workload_health(workloads: dict[str, dict[str, Any] | None]) -> tuple[str, str, str]:
    """Aggregate workload readiness into a condition status.

    Args:
        workloads: Workload name to object, ``None`` when it could not be read

    Returns:
        Tuple of (status, reason, message)
    """
    unknown = sorted(name for name, obj in workloads.items() if obj is None)
    if unknown:
        return (
            STATUS_UNKNOWN,
            REASON_DEPLOYMENTS_STATUS_UNKNOWN,
            f"Unable to read status of: {', '.join(unknown)}",
        )

    not_ready = sorted(name for name, obj in workloads.items() if not workload_ready(obj))
    if not_ready:
        return (
            STATUS_FALSE,
            REASON_DEPLOYMENTS_NOT_HEALTHY,
            f"Replicas not ready for: {', '.join(not_ready)}",
        )

    return STATUS_TRUE, REASON_DEPLOYMENTS_HEALTHY, "All the deployments managed by the operator are healthy"
