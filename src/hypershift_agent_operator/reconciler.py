"""Reconciliation of HypershiftAgentServiceConfig resources across hub and spoke."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from kubernetes.client.exceptions import ApiException

from . import metrics
from .builders import (
    WORKLOADS,
    hub_managed_kinds,
    hub_resources,
    operator_crd_label,
    spoke_managed_kinds,
    spoke_resources,
)
from .builders.hub import kubeconfig_secret_name
from .constants import (
    API_GROUP_VERSION,
    COND_RECONCILE_COMPLETED,
    FINALIZER,
    KIND_HYPERSHIFT_AGENT_SERVICE_CONFIG,
    REASON_AGENT_INSTALL_CRDS_UNAVAILABLE,
    REASON_HUB_RESOURCES_SYNC_FAILURE,
    REASON_KUBECONFIG_SECRET_FETCH_FAILURE,
    REASON_SPOKE_CLIENT_CREATION_FAILURE,
    REASON_SPOKE_RESOURCES_SYNC_FAILURE,
)
from .services.kube.base import KubeClient, SpokeClient
from .sync import ResourceSynchronizer, SyncResult
from .tracing import add_span_attribute, trace_span
from .utils.cache import SpokeClientCache
from .utils.conditions import (
    STATUS_TRUE,
    set_deployments_healthy_condition,
    set_reconcile_completed_condition,
    workload_health,
)
from .utils.errors import (
    ClientConstructionError,
    ConflictError,
    InvalidSecretKeyError,
    PrerequisiteMissingError,
    ReconcileTimeoutError,
    SecretNotFoundError,
    sanitize_exception,
)

logger = logging.getLogger(__name__)

KIND = KIND_HYPERSHIFT_AGENT_SERVICE_CONFIG


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome handed back to the scheduler; failures are raised instead."""

    finalized: bool = False


class Deadline:
    """Cooperative per-reconcile timeout checked between steps."""

    def __init__(self, timeout: float | None) -> None:
        self.expires_at = time.monotonic() + timeout if timeout else None

    def check(self, step: str) -> None:
        if self.expires_at is not None and time.monotonic() >= self.expires_at:
            raise ReconcileTimeoutError(f"Reconcile deadline exceeded before {step}")


class AgentServiceReconciler:
    """Drives one HypershiftAgentServiceConfig towards its desired state.

    Steps run in a fixed order: fetch, deletion handling, finalizer, spoke
    client, hub CRD prerequisite, spoke sync, hub sync, status. The finalizer
    is persisted before anything touches the spoke, and the spoke is fully
    converged before the hub workload that uses it.
    """

    def __init__(
        self,
        hub: KubeClient,
        spoke_clients: SpokeClientCache,
        images: dict[str, str] | None = None,
    ) -> None:
        """Initialize reconciler.

        Args:
            hub: Client for the hub cluster
            spoke_clients: Cache of spoke clients owned by this reconciler
            images: Container images for the hub workload (defaults from env)
        """
        self.hub = hub
        self.spoke_clients = spoke_clients
        self.images = images

    def reconcile(self, namespace: str, name: str, timeout: float | None = None) -> ReconcileResult:
        """Run one reconcile pass for the config ``namespace/name``.

        Raises:
            OperatorError: On any failure; the scheduler retries with backoff
        """
        deadline = Deadline(timeout)
        with trace_span("reconcile", kind=KIND, attributes={"namespace": namespace, "name": name}):
            hsc = self._get_config(namespace, name)
            if hsc is None:
                logger.info(f"{KIND} {namespace}/{name} not found, nothing to do")
                return ReconcileResult()

            if hsc["metadata"].get("deletionTimestamp"):
                return ReconcileResult(finalized=self._finalize(hsc))

            hsc = self._ensure_finalizer(hsc)

            reason = REASON_SPOKE_CLIENT_CREATION_FAILURE
            try:
                deadline.check("spoke client acquisition")
                spoke = self._acquire_spoke_client(hsc)

                reason = REASON_AGENT_INSTALL_CRDS_UNAVAILABLE
                deadline.check("prerequisite check")
                hub_crds = self._require_hub_crds(namespace)

                reason = REASON_SPOKE_RESOURCES_SYNC_FAILURE
                deadline.check("spoke synchronization")
                with trace_span("sync_spoke", kind=KIND):
                    spoke_result = ResourceSynchronizer(spoke, cluster="spoke").sync(
                        spoke_resources(hsc, hub_crds), spoke_managed_kinds(hsc)
                    )
                self._log_sync(hsc, "spoke", spoke_result)

                reason = REASON_HUB_RESOURCES_SYNC_FAILURE
                deadline.check("hub synchronization")
                with trace_span("sync_hub", kind=KIND):
                    hub_result = ResourceSynchronizer(self.hub, cluster="hub").sync(
                        hub_resources(hsc, self.images), hub_managed_kinds(hsc)
                    )
                self._log_sync(hsc, "hub", hub_result)
            except Exception as e:
                if isinstance(e.__cause__, (SecretNotFoundError, InvalidSecretKeyError)):
                    reason = REASON_KUBECONFIG_SECRET_FETCH_FAILURE
                self._record_failure(hsc, reason, e)
                raise

            self._write_status(hsc, self._compute_conditions(hsc))
            return ReconcileResult()

    def _get_config(self, namespace: str, name: str) -> dict[str, Any] | None:
        try:
            return self.hub.get(API_GROUP_VERSION, KIND, name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    def _update_config(self, hsc: dict[str, Any]) -> dict[str, Any]:
        try:
            return self.hub.update(hsc)
        except ApiException as e:
            if e.status == 409:
                raise ConflictError(f"{KIND} {hsc['metadata']['name']} was modified concurrently") from e
            raise

    def _finalize(self, hsc: dict[str, Any]) -> bool:
        """Release the spoke client and drop our finalizer; True if it was removed."""
        namespace = hsc["metadata"]["namespace"]
        name = hsc["metadata"]["name"]
        if self.spoke_clients.invalidate(namespace, name):
            logger.info(f"Released spoke client for {namespace}/{name}")

        finalizers = list(hsc["metadata"].get("finalizers") or [])
        if FINALIZER not in finalizers:
            return False
        finalizers.remove(FINALIZER)
        hsc["metadata"]["finalizers"] = finalizers
        try:
            self._update_config(hsc)
        except ApiException as e:
            if e.status != 404:
                raise
            return False
        logger.info(f"Removed finalizer from {KIND} {namespace}/{name}")
        return True

    def _ensure_finalizer(self, hsc: dict[str, Any]) -> dict[str, Any]:
        finalizers = list(hsc["metadata"].get("finalizers") or [])
        if FINALIZER in finalizers:
            return hsc
        finalizers.append(FINALIZER)
        hsc["metadata"]["finalizers"] = finalizers
        return self._update_config(hsc)

    def _acquire_spoke_client(self, hsc: dict[str, Any]) -> SpokeClient:
        with trace_span("acquire_spoke_client", kind=KIND):
            try:
                return self.spoke_clients.get(
                    hsc["metadata"]["namespace"],
                    hsc["metadata"]["name"],
                    kubeconfig_secret_name(hsc),
                )
            except Exception as e:
                raise ClientConstructionError(f"Failed to create client: {e}") from e

    def _require_hub_crds(self, namespace: str) -> list[dict[str, Any]]:
        """Agent-install CRDs installed on the hub for this namespace."""
        crds = self.hub.list(
            "apiextensions.k8s.io/v1",
            "CustomResourceDefinition",
            label_selector=operator_crd_label(namespace),
        )
        if not crds:
            raise PrerequisiteMissingError("agent-install CRDs are not available")
        add_span_attribute("hub.crds", len(crds))
        return crds

    def _compute_conditions(self, hsc: dict[str, Any]) -> list[dict[str, Any]]:
        conditions = list((hsc.get("status") or {}).get("conditions") or [])
        generation = hsc["metadata"].get("generation")
        conditions = set_reconcile_completed_condition(conditions, True, observed_generation=generation)

        namespace = hsc["metadata"]["namespace"]
        workloads: dict[str, dict[str, Any] | None] = {}
        for api_version, kind, name in WORKLOADS:
            try:
                workloads[name] = self.hub.get(api_version, kind, name, namespace)
            except ApiException as e:
                logger.warning(f"Unable to read {kind} {namespace}/{name}: {sanitize_exception(e)}")
                workloads[name] = None

        status, reason, message = workload_health(workloads)
        metrics.resource_status_total.labels(
            kind=KIND, status="ready" if status == STATUS_TRUE else "not_ready"
        ).inc()
        return set_deployments_healthy_condition(conditions, status, reason, message, generation)

    def _write_status(self, hsc: dict[str, Any], conditions: list[dict[str, Any]]) -> dict[str, Any]:
        current = hsc.get("status") or {}
        status = dict(current)
        status["conditions"] = conditions
        status["observedGeneration"] = hsc["metadata"].get("generation", 0)
        if status == current:
            return hsc
        body = dict(hsc)
        body["status"] = status
        try:
            return self.hub.update_status(body)
        except ApiException as e:
            if e.status == 409:
                raise ConflictError(f"{KIND} {hsc['metadata']['name']} status was modified concurrently") from e
            raise

    def _record_failure(self, hsc: dict[str, Any], reason: str, error: Exception) -> None:
        """Persist a False ReconcileCompleted condition; the original error wins over write failures."""
        conditions = list((hsc.get("status") or {}).get("conditions") or [])
        conditions = set_reconcile_completed_condition(
            conditions,
            False,
            reason=reason,
            message=sanitize_exception(error),
            observed_generation=hsc["metadata"].get("generation"),
        )
        try:
            self._write_status(hsc, conditions)
        except Exception as e:
            logger.error(
                f"Failed to record {COND_RECONCILE_COMPLETED} condition on "
                f"{hsc['metadata']['namespace']}/{hsc['metadata']['name']}: {sanitize_exception(e)}"
            )

    def _log_sync(self, hsc: dict[str, Any], cluster: str, result: SyncResult) -> None:
        ref = f"{hsc['metadata']['namespace']}/{hsc['metadata']['name']}"
        logger.info(
            f"Synchronized {cluster} resources for {ref}: created={len(result.created)} "
            f"updated={len(result.updated)} unchanged={len(result.unchanged)} deleted={len(result.deleted)}"
        )
        for warning in result.warnings:
            logger.warning(f"Incomplete {cluster} cleanup for {ref}: {warning}")
