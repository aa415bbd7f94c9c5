"""Utilities for reading connection secrets from the hub cluster."""

from __future__ import annotations

import base64
import binascii
from typing import Any

from kubernetes.client.exceptions import ApiException

from ..constants import KUBECONFIG_SECRET_KEY
from ..services.kube.base import KubeClient
from .errors import InvalidSecretKeyError, SecretNotFoundError


def decode_secret_value(value: str | bytes) -> bytes:
    """Decode a secret data value.

    The API server returns base64 strings; already-decoded bytes are passed
    through unchanged.
    """
    if isinstance(value, bytes):
        return value
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        # Not base64, assume it's already decoded
        return value.encode("utf-8")


def read_secret(api: KubeClient, secret_name: str, namespace: str) -> dict[str, Any]:
    """Read a secret from the hub cluster.

    Raises:
        SecretNotFoundError: If the secret does not exist
    """
    try:
        return api.get("v1", "Secret", secret_name, namespace)
    except ApiException as e:
        if e.status == 404:
            raise SecretNotFoundError(secret_name, namespace) from e
        raise


def get_secret_value(
    api: KubeClient,
    secret_name: str,
    namespace: str,
    key: str,
) -> bytes:
    """Get a single value from a Kubernetes secret.

    Args:
        api: Hub cluster client
        secret_name: Name of the secret
        namespace: Namespace of the secret
        key: Key in the secret

    Returns:
        Decoded secret value

    Raises:
        SecretNotFoundError: If the secret does not exist
        InvalidSecretKeyError: If the secret has no value under ``key``
    """
    secret = read_secret(api, secret_name, namespace)
    data = secret.get("data") or {}
    value = data.get(key)
    if not value:
        raise InvalidSecretKeyError(secret_name, key)
    return decode_secret_value(value)


def get_kubeconfig(api: KubeClient, secret_name: str, namespace: str) -> bytes:
    """Get the spoke kubeconfig referenced by a connection secret."""
    return get_secret_value(api, secret_name, namespace, KUBECONFIG_SECRET_KEY)
