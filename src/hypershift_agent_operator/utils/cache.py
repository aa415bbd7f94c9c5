"""Per-resource cache of spoke cluster clients."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from .. import metrics
from ..services.kube.base import SpokeClient

logger = logging.getLogger(__name__)

# (secret name, namespace) -> kubeconfig blob
CredentialResolver = Callable[[str, str], bytes]
# kubeconfig blob -> spoke client
ClientFactory = Callable[[bytes], SpokeClient]


def make_cache_key(namespace: str, name: str) -> str:
    """Create a cache key for a primary resource.

    Args:
        namespace: Resource namespace
        name: Resource name

    Returns:
        Cache key string
    """
    return f"{namespace}/{name}"


class SpokeClientCache:
    """Spoke clients keyed by primary resource identity.

    A coarse lock guards the entry map and the table of per-identity locks;
    credential resolution and client construction run under the identity's
    own lock so concurrent reconciles of different resources never wait on
    each other. Failures are never stored.
    """

    def __init__(self, resolver: CredentialResolver, factory: ClientFactory) -> None:
        self._resolver = resolver
        self._factory = factory
        self._clients: dict[str, SpokeClient] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def _identity_lock(self, key: str) -> threading.Lock:
        with self._lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _lookup(self, key: str) -> SpokeClient | None:
        with self._lock:
            return self._clients.get(key)

    def get(self, namespace: str, name: str, secret_name: str) -> SpokeClient:
        """Return the spoke client for a resource, building it on first use.

        Args:
            namespace: Primary resource namespace (also the secret's namespace)
            name: Primary resource name
            secret_name: Name of the connection secret

        Returns:
            Spoke client

        Raises:
            SecretNotFoundError: If the connection secret does not exist
            InvalidSecretKeyError: If the secret has no kubeconfig
            ClientConstructionError: If the client cannot be built
        """
        key = make_cache_key(namespace, name)
        client = self._lookup(key)
        if client is not None:
            metrics.spoke_client_cache_total.labels(result="hit").inc()
            return client

        with self._identity_lock(key):
            # Another reconcile may have built it while we waited
            client = self._lookup(key)
            if client is not None:
                metrics.spoke_client_cache_total.labels(result="hit").inc()
                return client

            metrics.spoke_client_cache_total.labels(result="miss").inc()
            try:
                kubeconfig = self._resolver(secret_name, namespace)
                client = self._factory(kubeconfig)
            except Exception:
                metrics.spoke_client_cache_total.labels(result="error").inc()
                raise

            with self._lock:
                self._clients[key] = client
            logger.info(f"Created spoke client for {key}")
            return client

    def invalidate(self, namespace: str, name: str) -> bool:
        """Drop the cached client for a resource.

        Waits for an in-flight build of the same identity. The identity lock
        itself is kept so later callers keep serializing on it.

        Returns:
            True if an entry was removed
        """
        key = make_cache_key(namespace, name)
        with self._identity_lock(key):
            with self._lock:
                return self._clients.pop(key, None) is not None

    def __contains__(self, identity: tuple[str, str]) -> bool:
        namespace, name = identity
        with self._lock:
            return make_cache_key(namespace, name) in self._clients

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)
