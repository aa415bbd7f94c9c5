"""Capability-typed Kubernetes client interfaces."""

from __future__ import annotations

from typing import Any, Protocol


class KubeClient(Protocol):
    """Protocol defining generic object operations against one API server.

    Objects are plain manifests. Lookups raise
    ``kubernetes.client.exceptions.ApiException`` with ``status == 404`` when
    the object is absent and ``status == 409`` on a stale resource version.
    """

    def get(
        self,
        api_version: str,
        kind: str,
        name: str,
        namespace: str | None = None,
    ) -> dict[str, Any]:
        """Get a single object."""
        ...

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        """List objects, optionally filtered by namespace and label selector."""
        ...

    def create(self, body: dict[str, Any]) -> dict[str, Any]:
        """Create an object and return the stored version."""
        ...

    def update(self, body: dict[str, Any]) -> dict[str, Any]:
        """Replace an object; ``metadata.resourceVersion`` must be current."""
        ...

    def update_status(self, body: dict[str, Any]) -> dict[str, Any]:
        """Replace the status subresource of an object."""
        ...

    def delete(
        self,
        api_version: str,
        kind: str,
        name: str,
        namespace: str | None = None,
    ) -> None:
        """Delete an object."""
        ...


class SpokeClient(KubeClient, Protocol):
    """Protocol for clients bound to a spoke cluster.

    Besides object CRUD, spoke clients expose the introspection calls that
    agent-side collaborators need. The synchronizer only uses the
    ``KubeClient`` part.
    """

    def create_subject_access_review(self, review: dict[str, Any]) -> dict[str, Any]:
        """Submit a SelfSubjectAccessReview and return the evaluated review."""
        ...

    def is_action_permitted(self, verb: str, resource: str) -> bool:
        """Check whether the client's identity may perform ``verb`` on ``resource``."""
        ...

    def list_csrs(self) -> list[dict[str, Any]]:
        """List certificate signing requests."""
        ...

    def approve_csr(self, csr: dict[str, Any]) -> None:
        """Approve a certificate signing request."""
        ...

    def get_node(self, name: str) -> dict[str, Any]:
        """Get a node by name."""
        ...


def object_key(obj: dict[str, Any]) -> tuple[str, str, str | None, str]:
    """Return ``(apiVersion, kind, namespace, name)`` for a manifest."""
    metadata = obj.get("metadata", {})
    return (
        obj.get("apiVersion", ""),
        obj.get("kind", ""),
        metadata.get("namespace") or None,
        metadata.get("name", ""),
    )
