"""Create-or-update and garbage collection of managed resources."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from kubernetes.client.exceptions import ApiException

from . import metrics
from .services.kube.base import KubeClient
from .utils.errors import GarbageCollectionWarning, SyncError, sanitize_exception

logger = logging.getLogger(__name__)

# Pure transform from an existing object to its converged form
MutateFn = Callable[[dict[str, Any]], dict[str, Any]]


@dataclass(frozen=True)
class ManagedResource:
    """A desired object plus how to converge an existing one onto it.

    ``mutate`` must not modify its argument and must be idempotent:
    ``mutate(mutate(x)) == mutate(x)``. It overwrites mutable fields only and
    leaves ``metadata.resourceVersion``, ``metadata.uid`` and ``status``
    alone.
    """

    manifest: dict[str, Any]
    mutate: MutateFn

    @property
    def api_version(self) -> str:
        return self.manifest["apiVersion"]

    @property
    def kind(self) -> str:
        return self.manifest["kind"]

    @property
    def name(self) -> str:
        return self.manifest["metadata"]["name"]

    @property
    def namespace(self) -> str | None:
        return self.manifest["metadata"].get("namespace") or None


@dataclass(frozen=True)
class ManagedKind:
    """Objects of one kind that are candidates for garbage collection."""

    api_version: str
    kind: str
    label_selector: str
    namespace: str | None = None


@dataclass
class SyncResult:
    """Outcome of one synchronization pass."""

    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    warnings: list[GarbageCollectionWarning] = field(default_factory=list)


def _ref(kind: str, name: str, namespace: str | None) -> str:
    return f"{kind}/{namespace}/{name}" if namespace else f"{kind}/{name}"


class ResourceSynchronizer:
    """Converges a set of managed resources onto one API server."""

    def __init__(self, client: KubeClient, cluster: str = "spoke") -> None:
        """Initialize synchronizer.

        Args:
            client: Target cluster client
            cluster: Cluster label for logs and metrics ("hub" or "spoke")
        """
        self.client = client
        self.cluster = cluster

    def sync(
        self,
        resources: Iterable[ManagedResource],
        managed_kinds: Iterable[ManagedKind] = (),
    ) -> SyncResult:
        """Create or update every resource, then delete undeclared leftovers.

        Raises:
            SyncError: If a get, create or update fails
        """
        result = SyncResult()
        declared: set[tuple[str, str, str | None, str]] = set()

        for resource in resources:
            declared.add((resource.api_version, resource.kind, resource.namespace, resource.name))
            self._apply(resource, result)

        for managed_kind in managed_kinds:
            self._collect_garbage(managed_kind, declared, result)

        return result

    def _apply(self, resource: ManagedResource, result: SyncResult) -> None:
        ref = _ref(resource.kind, resource.name, resource.namespace)
        try:
            existing = self.client.get(resource.api_version, resource.kind, resource.name, resource.namespace)
        except ApiException as e:
            if e.status != 404:
                raise SyncError("get", resource.kind, resource.name, e) from e
            existing = None

        if existing is None:
            try:
                self.client.create(copy.deepcopy(resource.manifest))
            except ApiException as e:
                raise SyncError("create", resource.kind, resource.name, e) from e
            logger.info(f"Created {self.cluster} {ref}")
            metrics.sync_operations_total.labels(cluster=self.cluster, kind=resource.kind, operation="create").inc()
            result.created.append(ref)
            return

        mutated = resource.mutate(existing)
        if mutated == existing:
            result.unchanged.append(ref)
            return

        try:
            self.client.update(mutated)
        except ApiException as e:
            raise SyncError("update", resource.kind, resource.name, e) from e
        logger.info(f"Updated {self.cluster} {ref}")
        metrics.sync_operations_total.labels(cluster=self.cluster, kind=resource.kind, operation="update").inc()
        result.updated.append(ref)

    def _collect_garbage(
        self,
        managed_kind: ManagedKind,
        declared: set[tuple[str, str, str | None, str]],
        result: SyncResult,
    ) -> None:
        try:
            existing = self.client.list(
                managed_kind.api_version,
                managed_kind.kind,
                namespace=managed_kind.namespace,
                label_selector=managed_kind.label_selector,
            )
        except Exception as e:
            self._warn(managed_kind.kind, e, result)
            return

        for obj in existing:
            metadata = obj.get("metadata", {})
            name = metadata.get("name", "")
            namespace = metadata.get("namespace") or None
            if (managed_kind.api_version, managed_kind.kind, namespace, name) in declared:
                continue

            ref = _ref(managed_kind.kind, name, namespace)
            try:
                self.client.delete(managed_kind.api_version, managed_kind.kind, name, namespace)
            except ApiException as e:
                if e.status != 404:
                    self._warn(managed_kind.kind, e, result)
                continue
            logger.info(f"Deleted redundant {self.cluster} {ref}")
            metrics.sync_operations_total.labels(cluster=self.cluster, kind=managed_kind.kind, operation="delete").inc()
            result.deleted.append(ref)

    def _warn(self, kind: str, error: Exception, result: SyncResult) -> None:
        warning = GarbageCollectionWarning(kind, error)
        logger.warning(f"Failed to clean up {self.cluster} {kind} resources: {sanitize_exception(error)}")
        metrics.garbage_collection_warnings_total.labels(cluster=self.cluster, kind=kind).inc()
        result.warnings.append(warning)
