"""Builders for the service workload running on the hub cluster."""

from __future__ import annotations

import os
from typing import Any

from ..constants import (
    DATABASE_NAME,
    DEFAULT_DATABASE_IMAGE,
    DEFAULT_IMAGE_SERVICE_IMAGE,
    DEFAULT_SERVICE_IMAGE,
    IMAGE_SERVICE_NAME,
    KUBECONFIG_ENV_VAR,
    KUBECONFIG_MOUNT_PATH,
    KUBECONFIG_SECRET_KEY,
    KUBECONFIG_VOLUME_NAME,
    LABEL_APP,
    SERVICE_ACCOUNT_NAME,
    SERVICE_NAME,
)
from ..sync import ManagedKind, ManagedResource
from .common import managed, managed_labels, managed_selector, object_meta

SERVICE_PORT = 8090
IMAGE_SERVICE_PORT = 8080
DATABASE_PORT = 5432

FILESYSTEM_VOLUME_NAME = "bucket-filesystem"
DATABASE_VOLUME_NAME = "postgresdb"
IMAGE_SERVICE_VOLUME_NAME = "image-service-data"


def default_images() -> dict[str, str]:
    """Container images, overridable from the environment."""
    return {
        "service": os.getenv("SERVICE_IMAGE", DEFAULT_SERVICE_IMAGE),
        "image_service": os.getenv("IMAGE_SERVICE_IMAGE", DEFAULT_IMAGE_SERVICE_IMAGE),
        "database": os.getenv("DATABASE_IMAGE", DEFAULT_DATABASE_IMAGE),
    }


def kubeconfig_secret_name(hsc: dict[str, Any]) -> str:
    return hsc.get("spec", {}).get("kubeconfigSecretRef", {}).get("name", "")


def _labels(hsc: dict[str, Any], app: str) -> dict[str, str]:
    labels = managed_labels(hsc)
    labels[LABEL_APP] = app
    return labels


def kubeconfig_volume(hsc: dict[str, Any]) -> dict[str, Any]:
    """Secret volume exposing the spoke kubeconfig to the service."""
    return {
        "name": KUBECONFIG_VOLUME_NAME,
        "secret": {"secretName": kubeconfig_secret_name(hsc)},
    }


def kubeconfig_volume_mount() -> dict[str, Any]:
    return {"name": KUBECONFIG_VOLUME_NAME, "mountPath": KUBECONFIG_MOUNT_PATH}


def kubeconfig_env() -> dict[str, Any]:
    return {"name": KUBECONFIG_ENV_VAR, "value": f"{KUBECONFIG_MOUNT_PATH}/{KUBECONFIG_SECRET_KEY}"}


def new_service_account(hsc: dict[str, Any]) -> ManagedResource:
    desired = {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": object_meta(
            SERVICE_ACCOUNT_NAME,
            hsc["metadata"]["namespace"],
            labels=_labels(hsc, SERVICE_NAME),
            owner=hsc,
        ),
    }
    return managed(desired)


def new_pvc(hsc: dict[str, Any], name: str, storage: dict[str, Any]) -> ManagedResource:
    """Persistent volume claim; a bound claim cannot be resized here so only metadata converges."""
    desired = {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": object_meta(name, hsc["metadata"]["namespace"], labels=_labels(hsc, SERVICE_NAME), owner=hsc),
        "spec": storage,
    }
    return managed(desired)


def new_service(hsc: dict[str, Any]) -> ManagedResource:
    desired = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": object_meta(SERVICE_NAME, hsc["metadata"]["namespace"], labels=_labels(hsc, SERVICE_NAME), owner=hsc),
        "spec": {
            "selector": {LABEL_APP: SERVICE_NAME},
            "ports": [{"name": SERVICE_NAME, "port": SERVICE_PORT, "protocol": "TCP", "targetPort": SERVICE_PORT}],
            "type": "ClusterIP",
        },
    }
    return managed(desired, ("spec", "selector"), ("spec", "ports"))


def new_image_service_service(hsc: dict[str, Any]) -> ManagedResource:
    """Governing Service of the image service StatefulSet."""
    desired = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": object_meta(
            IMAGE_SERVICE_NAME,
            hsc["metadata"]["namespace"],
            labels=_labels(hsc, IMAGE_SERVICE_NAME),
            owner=hsc,
        ),
        "spec": {
            "selector": {LABEL_APP: IMAGE_SERVICE_NAME},
            "ports": [{
                "name": IMAGE_SERVICE_NAME,
                "port": IMAGE_SERVICE_PORT,
                "protocol": "TCP",
                "targetPort": IMAGE_SERVICE_PORT,
            }],
            "type": "ClusterIP",
        },
    }
    return managed(desired, ("spec", "selector"), ("spec", "ports"))


def new_service_deployment(hsc: dict[str, Any], images: dict[str, str]) -> ManagedResource:
    """The assisted-service Deployment, wired to act as a spoke client."""
    namespace = hsc["metadata"]["namespace"]
    spec = hsc.get("spec", {})

    volumes = [kubeconfig_volume(hsc)]
    service_mounts = [kubeconfig_volume_mount()]
    if spec.get("fileSystemStorage"):
        volumes.append({"name": FILESYSTEM_VOLUME_NAME, "persistentVolumeClaim": {"claimName": SERVICE_NAME}})
        service_mounts.append({"name": FILESYSTEM_VOLUME_NAME, "mountPath": "/data"})

    containers = [{
        "name": SERVICE_NAME,
        "image": images["service"],
        "ports": [{"containerPort": SERVICE_PORT, "protocol": "TCP"}],
        "env": [
            kubeconfig_env(),
            {"name": "NAMESPACE", "value": namespace},
            {"name": "ENABLE_KUBE_API", "value": "true"},
            {"name": "STORAGE", "value": "filesystem"},
            {"name": "DB_HOST", "value": "localhost"},
            {"name": "DB_PORT", "value": str(DATABASE_PORT)},
        ],
        "volumeMounts": service_mounts,
    }]

    if spec.get("databaseStorage"):
        volumes.append({"name": DATABASE_VOLUME_NAME, "persistentVolumeClaim": {"claimName": DATABASE_NAME}})
        containers.append({
            "name": DATABASE_NAME,
            "image": images["database"],
            "ports": [{"containerPort": DATABASE_PORT, "protocol": "TCP"}],
            "volumeMounts": [{"name": DATABASE_VOLUME_NAME, "mountPath": "/var/lib/pgsql/data"}],
        })

    labels = _labels(hsc, SERVICE_NAME)
    desired = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": object_meta(SERVICE_NAME, namespace, labels=labels, owner=hsc),
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": {LABEL_APP: SERVICE_NAME}},
            "strategy": {"type": "Recreate"},
            "template": {
                "metadata": {"labels": labels},
                "spec": {
                    "serviceAccountName": SERVICE_ACCOUNT_NAME,
                    "containers": containers,
                    "volumes": volumes,
                },
            },
        },
    }
    return managed(desired, ("spec", "replicas"), ("spec", "strategy"), ("spec", "template"))


def new_image_service_statefulset(hsc: dict[str, Any], images: dict[str, str]) -> ManagedResource:
    namespace = hsc["metadata"]["namespace"]
    image_storage = hsc.get("spec", {}).get("imageStorage")

    container: dict[str, Any] = {
        "name": IMAGE_SERVICE_NAME,
        "image": images["image_service"],
        "ports": [{"containerPort": IMAGE_SERVICE_PORT, "protocol": "TCP"}],
        "env": [
            {"name": "LISTEN_PORT", "value": str(IMAGE_SERVICE_PORT)},
            {"name": "DATA_DIR", "value": "/data"},
        ],
        "volumeMounts": [{"name": IMAGE_SERVICE_VOLUME_NAME, "mountPath": "/data"}],
    }

    labels = _labels(hsc, IMAGE_SERVICE_NAME)
    pod_spec: dict[str, Any] = {"serviceAccountName": SERVICE_ACCOUNT_NAME, "containers": [container]}
    stateful_spec: dict[str, Any] = {
        "replicas": 1,
        "serviceName": IMAGE_SERVICE_NAME,
        "selector": {"matchLabels": {LABEL_APP: IMAGE_SERVICE_NAME}},
        "template": {"metadata": {"labels": labels}, "spec": pod_spec},
    }
    if image_storage:
        stateful_spec["volumeClaimTemplates"] = [{
            "metadata": {"name": IMAGE_SERVICE_VOLUME_NAME},
            "spec": image_storage,
        }]
    else:
        pod_spec["volumes"] = [{"name": IMAGE_SERVICE_VOLUME_NAME, "emptyDir": {}}]

    desired = {
        "apiVersion": "apps/v1",
        "kind": "StatefulSet",
        "metadata": object_meta(IMAGE_SERVICE_NAME, namespace, labels=labels, owner=hsc),
        "spec": stateful_spec,
    }
    return managed(desired, ("spec", "replicas"), ("spec", "template"))


def hub_resources(hsc: dict[str, Any], images: dict[str, str] | None = None) -> list[ManagedResource]:
    """All hub resources, in creation order."""
    images = images or default_images()
    spec = hsc.get("spec", {})

    resources = [new_service_account(hsc)]
    if spec.get("fileSystemStorage"):
        resources.append(new_pvc(hsc, SERVICE_NAME, spec["fileSystemStorage"]))
    if spec.get("databaseStorage"):
        resources.append(new_pvc(hsc, DATABASE_NAME, spec["databaseStorage"]))
    resources.extend([
        new_service(hsc),
        new_service_deployment(hsc, images),
        new_image_service_service(hsc),
        new_image_service_statefulset(hsc, images),
    ])
    return resources


def hub_managed_kinds(hsc: dict[str, Any]) -> list[ManagedKind]:
    """Kinds garbage collected on the hub; claims are kept to protect data."""
    namespace = hsc["metadata"]["namespace"]
    selector = managed_selector(hsc)
    return [
        ManagedKind("v1", "Service", selector, namespace),
        ManagedKind("apps/v1", "Deployment", selector, namespace),
        ManagedKind("apps/v1", "StatefulSet", selector, namespace),
    ]


# (apiVersion, kind, name) of the workloads whose health is reported
WORKLOADS: list[tuple[str, str, str]] = [
    ("apps/v1", "Deployment", SERVICE_NAME),
    ("apps/v1", "StatefulSet", IMAGE_SERVICE_NAME),
]
