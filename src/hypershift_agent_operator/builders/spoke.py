"""Builders for resources mirrored onto the spoke cluster."""

from __future__ import annotations

from typing import Any

from ..constants import (
    CLUSTER_ROLE_BINDING_NAME,
    CLUSTER_ROLE_NAME,
    LABEL_OPERATOR_CRD_PREFIX,
    LEADER_ELECTION_ROLE_NAME,
    SERVICE_ACCOUNT_NAME,
)
from ..sync import ManagedKind, ManagedResource
from .common import managed, managed_labels, managed_selector, object_meta

RBAC_API_VERSION = "rbac.authorization.k8s.io/v1"
CRD_API_VERSION = "apiextensions.k8s.io/v1"

LEADER_ELECTION_RULES: list[dict[str, Any]] = [
    {
        "apiGroups": [""],
        "resources": ["configmaps"],
        "verbs": ["get", "list", "watch", "create", "update", "patch", "delete"],
    },
    {
        "apiGroups": ["coordination.k8s.io"],
        "resources": ["leases"],
        "verbs": ["get", "list", "watch", "create", "update", "patch", "delete"],
    },
    {
        "apiGroups": [""],
        "resources": ["events"],
        "verbs": ["create", "patch"],
    },
]

MANAGER_RULES: list[dict[str, Any]] = [
    {
        "apiGroups": [""],
        "resources": ["nodes"],
        "verbs": ["get", "list", "watch"],
    },
    {
        "apiGroups": [""],
        "resources": ["secrets", "configmaps", "services", "events", "namespaces", "pods"],
        "verbs": ["get", "list", "watch", "create", "update", "patch", "delete"],
    },
    {
        "apiGroups": ["certificates.k8s.io"],
        "resources": ["certificatesigningrequests"],
        "verbs": ["get", "list", "watch"],
    },
    {
        "apiGroups": ["certificates.k8s.io"],
        "resources": ["certificatesigningrequests/approval"],
        "verbs": ["update"],
    },
    {
        "apiGroups": ["certificates.k8s.io"],
        "resources": ["signers"],
        "resourceNames": [
            "kubernetes.io/kube-apiserver-client-kubelet",
            "kubernetes.io/kubelet-serving",
        ],
        "verbs": ["approve"],
    },
    {
        "apiGroups": ["authorization.k8s.io"],
        "resources": ["selfsubjectaccessreviews"],
        "verbs": ["create"],
    },
    {
        "apiGroups": ["agent-install.openshift.io", "extensions.hive.openshift.io", "hive.openshift.io"],
        "resources": ["*"],
        "verbs": ["get", "list", "watch", "create", "update", "patch", "delete"],
    },
]


def operator_crd_label(namespace: str) -> str:
    """Label carried by the agent-install CRDs installed for ``namespace``."""
    return f"{LABEL_OPERATOR_CRD_PREFIX}.{namespace}"


def new_namespace(hsc: dict[str, Any]) -> ManagedResource:
    desired = {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": object_meta(hsc["metadata"]["namespace"], labels=managed_labels(hsc)),
    }
    return managed(desired)


def new_service_account(hsc: dict[str, Any]) -> ManagedResource:
    desired = {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": object_meta(
            SERVICE_ACCOUNT_NAME, hsc["metadata"]["namespace"], labels=managed_labels(hsc)
        ),
    }
    return managed(desired)


def _subjects(hsc: dict[str, Any]) -> list[dict[str, Any]]:
    return [{
        "kind": "ServiceAccount",
        "name": SERVICE_ACCOUNT_NAME,
        "namespace": hsc["metadata"]["namespace"],
    }]


def new_leader_election_role(hsc: dict[str, Any]) -> ManagedResource:
    """Role letting the service account run leader election in its namespace."""
    desired = {
        "apiVersion": RBAC_API_VERSION,
        "kind": "Role",
        "metadata": object_meta(
            LEADER_ELECTION_ROLE_NAME, hsc["metadata"]["namespace"], labels=managed_labels(hsc)
        ),
        "rules": LEADER_ELECTION_RULES,
    }
    return managed(desired, ("rules",))


def new_leader_election_role_binding(hsc: dict[str, Any]) -> ManagedResource:
    desired = {
        "apiVersion": RBAC_API_VERSION,
        "kind": "RoleBinding",
        "metadata": object_meta(
            LEADER_ELECTION_ROLE_NAME, hsc["metadata"]["namespace"], labels=managed_labels(hsc)
        ),
        "roleRef": {
            "apiGroup": "rbac.authorization.k8s.io",
            "kind": "Role",
            "name": LEADER_ELECTION_ROLE_NAME,
        },
        "subjects": _subjects(hsc),
    }
    return managed(desired, ("roleRef",), ("subjects",))


def new_cluster_role(hsc: dict[str, Any]) -> ManagedResource:
    """ClusterRole with the permissions the hub service needs on the spoke."""
    desired = {
        "apiVersion": RBAC_API_VERSION,
        "kind": "ClusterRole",
        "metadata": object_meta(CLUSTER_ROLE_NAME, labels=managed_labels(hsc)),
        "rules": MANAGER_RULES,
    }
    return managed(desired, ("rules",))


def new_cluster_role_binding(hsc: dict[str, Any]) -> ManagedResource:
    desired = {
        "apiVersion": RBAC_API_VERSION,
        "kind": "ClusterRoleBinding",
        "metadata": object_meta(CLUSTER_ROLE_BINDING_NAME, labels=managed_labels(hsc)),
        "roleRef": {
            "apiGroup": "rbac.authorization.k8s.io",
            "kind": "ClusterRole",
            "name": CLUSTER_ROLE_NAME,
        },
        "subjects": _subjects(hsc),
    }
    return managed(desired, ("roleRef",), ("subjects",))


def new_spoke_crd(hsc: dict[str, Any], hub_crd: dict[str, Any]) -> ManagedResource:
    """Mirror of a hub CRD; labels and spec follow the hub copy."""
    hub_meta = hub_crd.get("metadata", {})
    labels = dict(hub_meta.get("labels") or {})
    labels.update(managed_labels(hsc))
    desired = {
        "apiVersion": CRD_API_VERSION,
        "kind": "CustomResourceDefinition",
        "metadata": object_meta(hub_meta["name"], labels=labels),
        "spec": hub_crd.get("spec") or {},
    }
    return managed(desired, ("spec",))


def spoke_resources(hsc: dict[str, Any], hub_crds: list[dict[str, Any]]) -> list[ManagedResource]:
    """All resources the spoke cluster must carry, in creation order."""
    resources = [new_namespace(hsc)]
    resources.extend(new_spoke_crd(hsc, crd) for crd in hub_crds)
    resources.extend([
        new_service_account(hsc),
        new_leader_election_role(hsc),
        new_leader_election_role_binding(hsc),
        new_cluster_role(hsc),
        new_cluster_role_binding(hsc),
    ])
    return resources


def spoke_managed_kinds(hsc: dict[str, Any]) -> list[ManagedKind]:
    """Kinds garbage collected on the spoke cluster.

    Namespaces are never collected.
    """
    namespace = hsc["metadata"]["namespace"]
    selector = managed_selector(hsc)
    return [
        ManagedKind(CRD_API_VERSION, "CustomResourceDefinition", operator_crd_label(namespace)),
        ManagedKind("v1", "ServiceAccount", selector, namespace),
        ManagedKind(RBAC_API_VERSION, "Role", selector, namespace),
        ManagedKind(RBAC_API_VERSION, "RoleBinding", selector, namespace),
        ManagedKind(RBAC_API_VERSION, "ClusterRole", selector),
        ManagedKind(RBAC_API_VERSION, "ClusterRoleBinding", selector),
    ]
