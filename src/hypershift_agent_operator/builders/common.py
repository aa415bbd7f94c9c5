"""Helpers shared by the managed resource builders."""

from __future__ import annotations

import copy
from typing import Any

from ..constants import FIELD_MANAGER, LABEL_MANAGED_BY, LABEL_OWNER_NAME
from ..sync import ManagedResource, MutateFn


def managed_labels(hsc: dict[str, Any]) -> dict[str, str]:
    """Labels marking an object as owned by the given config."""
    return {
        LABEL_MANAGED_BY: FIELD_MANAGER,
        LABEL_OWNER_NAME: hsc["metadata"]["name"],
    }


def managed_selector(hsc: dict[str, Any]) -> str:
    """Label selector matching objects owned by the given config."""
    return ",".join(f"{key}={value}" for key, value in sorted(managed_labels(hsc).items()))


def owner_reference(hsc: dict[str, Any]) -> dict[str, Any]:
    """Controller owner reference pointing at the config (hub objects only)."""
    return {
        "apiVersion": hsc["apiVersion"],
        "kind": hsc["kind"],
        "name": hsc["metadata"]["name"],
        "uid": hsc["metadata"].get("uid", ""),
        "controller": True,
        "blockOwnerDeletion": True,
    }


def object_meta(
    name: str,
    namespace: str | None = None,
    labels: dict[str, str] | None = None,
    owner: dict[str, Any] | None = None,
) -> dict[str, Any]:
    metadata: dict[str, Any] = {"name": name, "labels": dict(labels or {})}
    if namespace:
        metadata["namespace"] = namespace
    if owner is not None:
        metadata["ownerReferences"] = [owner_reference(owner)]
    return metadata


def _get_path(obj: dict[str, Any], path: tuple[str, ...]) -> Any:
    for key in path:
        if not isinstance(obj, dict) or key not in obj:
            return None
        obj = obj[key]
    return obj


def _set_path(obj: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    for key in path[:-1]:
        if not isinstance(obj.get(key), dict):
            obj[key] = {}
        obj = obj[key]
    if value is None:
        obj.pop(path[-1], None)
    else:
        obj[path[-1]] = value


def converge(desired: dict[str, Any], *paths: tuple[str, ...]) -> MutateFn:
    """Build a mutate function that copies ``paths`` from ``desired``.

    Desired labels are merged over the existing ones so labels added by
    other actors survive; owner references are overwritten when desired
    declares them.
    """
    desired = copy.deepcopy(desired)
    desired_labels = desired["metadata"].get("labels") or {}
    desired_owners = desired["metadata"].get("ownerReferences")

    def mutate(existing: dict[str, Any]) -> dict[str, Any]:
        obj = copy.deepcopy(existing)
        metadata = obj.setdefault("metadata", {})
        labels = dict(metadata.get("labels") or {})
        labels.update(desired_labels)
        metadata["labels"] = labels
        if desired_owners is not None:
            metadata["ownerReferences"] = copy.deepcopy(desired_owners)
        for path in paths:
            _set_path(obj, path, copy.deepcopy(_get_path(desired, path)))
        return obj

    return mutate


def managed(desired: dict[str, Any], *paths: tuple[str, ...]) -> ManagedResource:
    """Declare ``desired`` as a managed resource converging on ``paths``."""
    return ManagedResource(manifest=desired, mutate=converge(desired, *paths))
