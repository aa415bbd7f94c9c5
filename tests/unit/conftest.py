"""Shared fixtures for unit tests."""

from __future__ import annotations

import base64
from typing import Any

import pytest

from hypershift_agent_operator.builders import operator_crd_label
from hypershift_agent_operator.constants import API_GROUP_VERSION, KIND_HYPERSHIFT_AGENT_SERVICE_CONFIG
from hypershift_agent_operator.reconciler import AgentServiceReconciler
from hypershift_agent_operator.services.kube import InMemoryKubeClient
from hypershift_agent_operator.utils.cache import SpokeClientCache
from hypershift_agent_operator.utils.secrets import get_kubeconfig

NAMESPACE = "assisted-installer"
NAME = "hypershift-agent"
SECRET_NAME = "spoke-kubeconfig"
KUBECONFIG = b"apiVersion: v1\nkind: Config\nclusters: []\n"


@pytest.fixture
def hsc() -> dict[str, Any]:
    """A HypershiftAgentServiceConfig as read from the hub."""
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_HYPERSHIFT_AGENT_SERVICE_CONFIG,
        "metadata": {
            "name": NAME,
            "namespace": NAMESPACE,
            "uid": "b3f5c1a2-0000-4000-8000-000000000001",
            "generation": 1,
        },
        "spec": {
            "kubeconfigSecretRef": {"name": SECRET_NAME},
        },
    }


@pytest.fixture
def kubeconfig_secret() -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": SECRET_NAME, "namespace": NAMESPACE},
        "data": {"kubeconfig": base64.b64encode(KUBECONFIG).decode()},
    }


@pytest.fixture
def hub_crds() -> list[dict[str, Any]]:
    """Agent-install CRDs as installed on the hub by the operator bundle."""
    crds = []
    for plural, kind in (("agents", "Agent"), ("infraenvs", "InfraEnv")):
        crds.append({
            "apiVersion": "apiextensions.k8s.io/v1",
            "kind": "CustomResourceDefinition",
            "metadata": {
                "name": f"{plural}.agent-install.openshift.io",
                "labels": {operator_crd_label(NAMESPACE): ""},
            },
            "spec": {
                "group": "agent-install.openshift.io",
                "names": {"plural": plural, "kind": kind},
                "scope": "Namespaced",
                "versions": [{"name": "v1beta1", "served": True, "storage": True}],
            },
        })
    return crds


@pytest.fixture
def hub(hsc, kubeconfig_secret, hub_crds) -> InMemoryKubeClient:
    return InMemoryKubeClient([hsc, kubeconfig_secret, *hub_crds])


@pytest.fixture
def spoke() -> InMemoryKubeClient:
    return InMemoryKubeClient()


@pytest.fixture
def spoke_clients(hub, spoke) -> SpokeClientCache:
    return SpokeClientCache(
        lambda secret_name, namespace: get_kubeconfig(hub, secret_name, namespace),
        lambda kubeconfig: spoke,
    )


@pytest.fixture
def reconciler(hub, spoke_clients) -> AgentServiceReconciler:
    images = {
        "service": "registry.example.com/assisted-service:test",
        "image_service": "registry.example.com/assisted-image-service:test",
        "database": "registry.example.com/postgres:test",
    }
    return AgentServiceReconciler(hub, spoke_clients, images=images)
