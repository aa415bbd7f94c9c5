"""In-memory Kubernetes client.

Stores manifests in a dictionary and mimics the API server semantics the
operator relies on: NotFound/AlreadyExists/Conflict errors, resource version
and UID assignment, label selector filtering, and status being ignored on
regular updates.
"""

from __future__ import annotations

import copy
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from kubernetes.client.exceptions import ApiException

from .base import object_key
from .client import approved_csr

_Key = tuple[str, str, "str | None", str]


class InMemoryKubeClient:
    """Client holding objects in process memory.

    Implements ``SpokeClient``. ``fail_on`` lets callers inject errors for a
    given operation, e.g. ``fail_on["list"] = ApiException(status=500)``.
    """

    def __init__(self, objects: Iterable[dict[str, Any]] = (), permitted: bool = True) -> None:
        self._objects: dict[_Key, dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._resource_version = 0
        self.permitted = permitted
        self.fail_on: dict[str, Exception | Callable[[_Key], Exception | None]] = {}
        self.calls: list[tuple[str, str, str]] = []
        for obj in objects:
            self.create(obj)

    def _next_resource_version(self) -> str:
        self._resource_version += 1
        return str(self._resource_version)

    def _maybe_fail(self, operation: str, key: _Key) -> None:
        self.calls.append((operation, key[1], key[3]))
        failure = self.fail_on.get(operation)
        if failure is None:
            return
        error = failure(key) if callable(failure) else failure
        if error is not None:
            raise error

    @staticmethod
    def _not_found(kind: str, name: str) -> ApiException:
        return ApiException(status=404, reason=f'{kind} "{name}" not found')

    def get(
        self,
        api_version: str,
        kind: str,
        name: str,
        namespace: str | None = None,
    ) -> dict[str, Any]:
        key = (api_version, kind, namespace or None, name)
        self._maybe_fail("get", key)
        with self._lock:
            if key not in self._objects:
                raise self._not_found(kind, name)
            return copy.deepcopy(self._objects[key])

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        self._maybe_fail("list", (api_version, kind, namespace, ""))
        selector = parse_label_selector(label_selector)
        with self._lock:
            items = [
                copy.deepcopy(obj)
                for (obj_api_version, obj_kind, obj_namespace, _), obj in self._objects.items()
                if obj_api_version == api_version
                and obj_kind == kind
                and (namespace is None or obj_namespace == namespace)
                and matches_labels(obj.get("metadata", {}).get("labels") or {}, selector)
            ]
        return sorted(items, key=lambda o: o["metadata"]["name"])

    def create(self, body: dict[str, Any]) -> dict[str, Any]:
        key = object_key(body)
        self._maybe_fail("create", key)
        with self._lock:
            if key in self._objects:
                raise ApiException(status=409, reason=f'{key[1]} "{key[3]}" already exists')
            obj = copy.deepcopy(body)
            metadata = obj.setdefault("metadata", {})
            metadata["uid"] = str(uuid.uuid4())
            metadata["resourceVersion"] = self._next_resource_version()
            metadata["creationTimestamp"] = datetime.now(timezone.utc).isoformat()
            metadata.setdefault("generation", 1)
            self._objects[key] = obj
            return copy.deepcopy(obj)

    def update(self, body: dict[str, Any]) -> dict[str, Any]:
        return self._replace("update", body, status_only=False)

    def update_status(self, body: dict[str, Any]) -> dict[str, Any]:
        return self._replace("update_status", body, status_only=True)

    def _replace(self, operation: str, body: dict[str, Any], status_only: bool) -> dict[str, Any]:
        key = object_key(body)
        self._maybe_fail(operation, key)
        with self._lock:
            current = self._objects.get(key)
            if current is None:
                raise self._not_found(key[1], key[3])
            expected = body.get("metadata", {}).get("resourceVersion")
            if expected and expected != current["metadata"]["resourceVersion"]:
                raise ApiException(
                    status=409,
                    reason=f'Operation cannot be fulfilled on {key[1]} "{key[3]}": '
                    "the object has been modified",
                )

            if status_only:
                obj = copy.deepcopy(current)
                obj["status"] = copy.deepcopy(body.get("status"))
            else:
                obj = copy.deepcopy(body)
                if "status" in current:
                    obj["status"] = copy.deepcopy(current["status"])
                else:
                    obj.pop("status", None)
                metadata = obj.setdefault("metadata", {})
                for field in ("uid", "creationTimestamp", "deletionTimestamp"):
                    if field in current["metadata"]:
                        metadata[field] = current["metadata"][field]
                generation = current["metadata"].get("generation", 1)
                if obj.get("spec") != current.get("spec"):
                    generation += 1
                metadata["generation"] = generation

            obj["metadata"]["resourceVersion"] = self._next_resource_version()

            # Objects marked for deletion go away once their last finalizer is dropped
            if obj["metadata"].get("deletionTimestamp") and not obj["metadata"].get("finalizers"):
                del self._objects[key]
            else:
                self._objects[key] = obj
            return copy.deepcopy(obj)

    def delete(
        self,
        api_version: str,
        kind: str,
        name: str,
        namespace: str | None = None,
    ) -> None:
        key = (api_version, kind, namespace or None, name)
        self._maybe_fail("delete", key)
        with self._lock:
            obj = self._objects.get(key)
            if obj is None:
                raise self._not_found(kind, name)
            if obj["metadata"].get("finalizers"):
                obj["metadata"].setdefault("deletionTimestamp", datetime.now(timezone.utc).isoformat())
                obj["metadata"]["resourceVersion"] = self._next_resource_version()
            else:
                del self._objects[key]

    def create_subject_access_review(self, review: dict[str, Any]) -> dict[str, Any]:
        evaluated = copy.deepcopy(review)
        evaluated["status"] = {"allowed": self.permitted}
        return evaluated

    def is_action_permitted(self, verb: str, resource: str) -> bool:
        return self.permitted

    def list_csrs(self) -> list[dict[str, Any]]:
        return self.list("certificates.k8s.io/v1", "CertificateSigningRequest")

    def approve_csr(self, csr: dict[str, Any]) -> None:
        self.update_status(approved_csr(csr))

    def get_node(self, name: str) -> dict[str, Any]:
        return self.get("v1", "Node", name)


def parse_label_selector(selector: str | None) -> list[tuple[str, str | None]]:
    """Parse an equality-based label selector.

    Supports ``key=value``, ``key==value`` and bare ``key`` (existence).
    """
    requirements: list[tuple[str, str | None]] = []
    if not selector:
        return requirements
    for term in selector.split(","):
        term = term.strip()
        if not term:
            continue
        if "==" in term:
            key, value = term.split("==", 1)
        elif "=" in term:
            key, value = term.split("=", 1)
        else:
            requirements.append((term, None))
            continue
        requirements.append((key.strip(), value.strip()))
    return requirements


def matches_labels(labels: dict[str, str], requirements: list[tuple[str, str | None]]) -> bool:
    """Check labels against parsed selector requirements."""
    for key, value in requirements:
        if key not in labels:
            return False
        if value is not None and labels[key] != value:
            return False
    return True
