"""Handler for HypershiftAgentServiceConfig CRD."""

from __future__ import annotations

import os
import threading
from typing import Any

import kopf

from ..constants import (
    API_GROUP,
    API_VERSION,
    KIND_HYPERSHIFT_AGENT_SERVICE_CONFIG,
    PLURAL_HYPERSHIFT_AGENT_SERVICE_CONFIG,
)
from ..reconciler import AgentServiceReconciler, ReconcileResult
from ..services.kube import create_hub_client, create_spoke_client
from ..utils.cache import SpokeClientCache, make_cache_key
from ..utils.errors import ConflictError
from ..utils.events import emit_finalizer_removed
from ..utils.secrets import get_kubeconfig
from .base import BaseHandler

RESOURCE = (API_GROUP, API_VERSION, PLURAL_HYPERSHIFT_AGENT_SERVICE_CONFIG)


def _env_float(name: str, default: str) -> float | None:
    value = float(os.getenv(name, default))
    return value if value > 0 else None


class AgentServiceConfigHandler(BaseHandler):
    """Handler for HypershiftAgentServiceConfig resources."""

    def __init__(self, reconciler: AgentServiceReconciler | None = None):
        """Initialize handler.

        Args:
            reconciler: Reconciler to drive; built from the in-cluster config on first use if omitted
        """
        super().__init__(KIND_HYPERSHIFT_AGENT_SERVICE_CONFIG)
        self._reconciler = reconciler
        self._lock = threading.Lock()
        self._identity_locks: dict[str, threading.Lock] = {}
        self.timeout = _env_float("RECONCILE_TIMEOUT_SECONDS", "120")

    @property
    def reconciler(self) -> AgentServiceReconciler:
        with self._lock:
            if self._reconciler is None:
                self._reconciler = build_reconciler()
            return self._reconciler

    def _identity_lock(self, meta: dict[str, Any]) -> threading.Lock:
        key = make_cache_key(meta["namespace"], meta["name"])
        with self._lock:
            return self._identity_locks.setdefault(key, threading.Lock())

    def reconcile(self, body: dict[str, Any]) -> ReconcileResult:
        """Reconcile a config, translating outcomes into kopf retry semantics.

        kopf runs the timer alongside change handlers, so passes for one
        config are serialized here.
        """
        meta = body.get("metadata", {})
        try:
            with self._identity_lock(meta):
                result = self.reconcile_with_metrics(
                    body,
                    lambda: self.reconciler.reconcile(meta["namespace"], meta["name"], timeout=self.timeout),
                )
        except ConflictError as e:
            raise kopf.TemporaryError(str(e), delay=1) from e

        if result.finalized:
            self.log_info(meta, "Spoke client released and finalizer removed", event="deletion", reason="Deletion")
            emit_finalizer_removed(body)
        return result


def build_reconciler() -> AgentServiceReconciler:
    """Wire a reconciler against the live hub cluster."""
    request_timeout = _env_float("K8S_REQUEST_TIMEOUT_SECONDS", "30")
    hub = create_hub_client(request_timeout)
    cache = SpokeClientCache(
        lambda secret_name, namespace: get_kubeconfig(hub, secret_name, namespace),
        lambda kubeconfig: create_spoke_client(kubeconfig, request_timeout),
    )
    return AgentServiceReconciler(hub, cache)


# Global handler instance
_handler = AgentServiceConfigHandler()


@kopf.on.create(*RESOURCE)
@kopf.on.update(*RESOURCE)
@kopf.on.resume(*RESOURCE)
@kopf.timer(*RESOURCE, interval=int(os.getenv("RESYNC_INTERVAL_SECONDS", "300")))  # Default 5 minutes
def handle_agent_service_config(body: kopf.Body, **kwargs: Any) -> None:
    """Handle HypershiftAgentServiceConfig reconciliation."""
    _handler.reconcile(dict(body))


@kopf.on.delete(*RESOURCE, optional=True)
def handle_agent_service_config_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle HypershiftAgentServiceConfig deletion; the reconciler owns the finalizer."""
    _handler.reconcile(dict(body))
