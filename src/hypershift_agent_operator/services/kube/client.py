"""Live Kubernetes client backed by the dynamic client."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import yaml
from kubernetes import client, config
from kubernetes.dynamic import DynamicClient

from ... import metrics
from ...constants import FIELD_MANAGER
from ...utils.errors import ClientConstructionError, sanitize_exception
from .base import SpokeClient

logger = logging.getLogger(__name__)


class BoundedApiClient(client.ApiClient):
    """API client applying a default timeout to every request it sends.

    Covers requests made outside ``LiveKubeClient._call``, such as the
    discovery performed while the dynamic client is constructed.
    """

    def __init__(
        self,
        configuration: client.Configuration | None = None,
        request_timeout: float | None = None,
    ) -> None:
        super().__init__(configuration)
        self.request_timeout = request_timeout

    def call_api(self, *args: Any, **kwargs: Any) -> Any:
        if kwargs.get("_request_timeout") is None:
            kwargs["_request_timeout"] = self.request_timeout
        return super().call_api(*args, **kwargs)


class LiveKubeClient:
    """Client bound to a real API server.

    Implements ``SpokeClient``; used for both the hub and spoke clusters.
    """

    def __init__(
        self,
        api_client: client.ApiClient,
        request_timeout: float | None = None,
        api_type: str = "spoke",
    ) -> None:
        """Initialize the client.

        Constructing the dynamic client performs API discovery, so an
        unreachable server fails here rather than on first use.

        Args:
            api_client: Configured Kubernetes API client
            request_timeout: Timeout in seconds applied to every request
            api_type: Label used for API call metrics ("hub" or "spoke")
        """
        self.api_client = api_client
        self.request_timeout = request_timeout
        self.api_type = api_type
        self.dynamic = DynamicClient(api_client)

    def _call(self, operation: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        if self.request_timeout is not None:
            kwargs["_request_timeout"] = self.request_timeout
        start_time = time.time()
        try:
            result = fn(**kwargs)
            metrics.api_call_total.labels(api_type=self.api_type, operation=operation, result="success").inc()
            return result
        except Exception:
            metrics.api_call_total.labels(api_type=self.api_type, operation=operation, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type=self.api_type, operation=operation).observe(duration)

    def _resource(self, api_version: str, kind: str) -> Any:
        return self.dynamic.resources.get(api_version=api_version, kind=kind)

    def get(
        self,
        api_version: str,
        kind: str,
        name: str,
        namespace: str | None = None,
    ) -> dict[str, Any]:
        resource = self._resource(api_version, kind)
        return self._call("get", resource.get, name=name, namespace=namespace).to_dict()

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        resource = self._resource(api_version, kind)
        kwargs: dict[str, Any] = {"namespace": namespace}
        if label_selector:
            kwargs["label_selector"] = label_selector
        result = self._call("list", resource.get, **kwargs).to_dict()
        return result.get("items") or []

    def create(self, body: dict[str, Any]) -> dict[str, Any]:
        resource = self._resource(body["apiVersion"], body["kind"])
        namespace = body.get("metadata", {}).get("namespace")
        return self._call(
            "create", resource.create, body=body, namespace=namespace, field_manager=FIELD_MANAGER
        ).to_dict()

    def update(self, body: dict[str, Any]) -> dict[str, Any]:
        resource = self._resource(body["apiVersion"], body["kind"])
        namespace = body.get("metadata", {}).get("namespace")
        return self._call(
            "update", resource.replace, body=body, namespace=namespace, field_manager=FIELD_MANAGER
        ).to_dict()

    def update_status(self, body: dict[str, Any]) -> dict[str, Any]:
        resource = self._resource(body["apiVersion"], body["kind"])
        namespace = body.get("metadata", {}).get("namespace")
        return self._call(
            "update_status",
            resource.subresources["status"].replace,
            body=body,
            namespace=namespace,
            field_manager=FIELD_MANAGER,
        ).to_dict()

    def delete(
        self,
        api_version: str,
        kind: str,
        name: str,
        namespace: str | None = None,
    ) -> None:
        resource = self._resource(api_version, kind)
        self._call("delete", resource.delete, name=name, namespace=namespace)

    def create_subject_access_review(self, review: dict[str, Any]) -> dict[str, Any]:
        resource = self._resource("authorization.k8s.io/v1", "SelfSubjectAccessReview")
        return self._call("create_subject_access_review", resource.create, body=review).to_dict()

    def is_action_permitted(self, verb: str, resource: str) -> bool:
        review = self.create_subject_access_review(self_subject_access_review(verb, resource))
        return bool(review.get("status", {}).get("allowed", False))

    def list_csrs(self) -> list[dict[str, Any]]:
        return self.list("certificates.k8s.io/v1", "CertificateSigningRequest")

    def approve_csr(self, csr: dict[str, Any]) -> None:
        resource = self._resource("certificates.k8s.io/v1", "CertificateSigningRequest")
        self._call("approve_csr", resource.subresources["approval"].replace, body=approved_csr(csr))

    def get_node(self, name: str) -> dict[str, Any]:
        return self.get("v1", "Node", name)


def self_subject_access_review(verb: str, resource: str) -> dict[str, Any]:
    """Build a SelfSubjectAccessReview manifest."""
    return {
        "apiVersion": "authorization.k8s.io/v1",
        "kind": "SelfSubjectAccessReview",
        "spec": {"resourceAttributes": {"verb": verb, "resource": resource}},
    }


def approved_csr(csr: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``csr`` carrying an Approved condition."""
    approved = dict(csr)
    status = dict(approved.get("status") or {})
    conditions = [c for c in status.get("conditions") or [] if c.get("type") != "Approved"]
    conditions.append({
        "type": "Approved",
        "status": "True",
        "reason": "NodeCSRApprove",
        "message": "This CSR was approved by the assisted-service",
    })
    status["conditions"] = conditions
    approved["status"] = status
    return approved


def create_spoke_client(kubeconfig: bytes, request_timeout: float | None = None) -> SpokeClient:
    """Create a spoke client from a kubeconfig blob.

    Args:
        kubeconfig: Raw kubeconfig contents
        request_timeout: Timeout in seconds applied to every request

    Returns:
        Client bound to the spoke API server

    Raises:
        ClientConstructionError: If the kubeconfig is malformed or the server
            metadata cannot be fetched
    """
    try:
        config_dict = yaml.safe_load(kubeconfig)
    except yaml.YAMLError as e:
        raise ClientConstructionError(f"Failed to parse kubeconfig: {sanitize_exception(e)}") from e

    if not isinstance(config_dict, dict):
        raise ClientConstructionError("Failed to parse kubeconfig: expected a mapping")

    configuration = client.Configuration()
    try:
        config.load_kube_config_from_dict(config_dict, client_configuration=configuration, persist_config=False)
    except Exception as e:
        raise ClientConstructionError(f"Invalid kubeconfig: {sanitize_exception(e)}") from e
    api_client = BoundedApiClient(configuration, request_timeout=request_timeout)

    try:
        return LiveKubeClient(api_client, request_timeout=request_timeout, api_type="spoke")
    except Exception as e:
        raise ClientConstructionError(
            f"Failed to reach spoke API server: {sanitize_exception(e)}"
        ) from e


def create_hub_client(request_timeout: float | None = None) -> LiveKubeClient:
    """Create a client for the cluster the operator runs in."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()

    api_client = BoundedApiClient(request_timeout=request_timeout)
    return LiveKubeClient(api_client, request_timeout=request_timeout, api_type="hub")
