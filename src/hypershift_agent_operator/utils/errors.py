"""Operator error taxonomy and sanitization utilities."""

from __future__ import annotations

import re


class OperatorError(Exception):
    """Base class for errors raised while reconciling."""


class SecretNotFoundError(OperatorError):
    """The referenced connection secret does not exist."""

    def __init__(self, name: str, namespace: str) -> None:
        super().__init__(f"Failed to get '{name}' secret in '{namespace}' namespace")
        self.name = name
        self.namespace = namespace


class InvalidSecretKeyError(OperatorError):
    """The connection secret lacks the required key."""

    def __init__(self, name: str, key: str) -> None:
        super().__init__(f"Secret '{name}' does not contain '{key}' key value")
        self.name = name
        self.key = key


class ClientConstructionError(OperatorError):
    """A spoke client could not be built from the connection blob."""


class PrerequisiteMissingError(OperatorError):
    """A hub-side prerequisite for synchronization is not installed."""


class SyncError(OperatorError):
    """A get, create or update of a managed resource failed."""

    def __init__(self, operation: str, kind: str, name: str, cause: Exception) -> None:
        super().__init__(f"Failed to {operation} {kind} '{name}': {cause}")
        self.operation = operation
        self.kind = kind
        self.name = name
        self.cause = cause


class GarbageCollectionWarning(OperatorError):
    """Cleanup of undeclared resources failed.

    Never raised: collected on the sync result and logged.
    """

    def __init__(self, kind: str, cause: Exception) -> None:
        super().__init__(f"Failed to clean up {kind} resources: {cause}")
        self.kind = kind
        self.cause = cause


class ConflictError(OperatorError):
    """An update targeted a stale resource version."""


class ReconcileTimeoutError(OperatorError):
    """The per-reconcile deadline expired."""


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"(client-key-data)[:\s]+([A-Za-z0-9/+=]+)",
    r"(client-certificate-data)[:\s]+([A-Za-z0-9/+=]+)",
    r"(certificate-authority-data)[:\s]+([A-Za-z0-9/+=]+)",
    r"(bearer)\s+([A-Za-z0-9\-_\.]+)",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "token",
    "password",
    "kubeconfig",
    "client-key-data",
    "client_key_data",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, r"\1 [REDACTED]", sanitized, flags=re.IGNORECASE)

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"\b{field}\s*[:=]\s*([^\s,;\)]+)",
            rf"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: Exception) -> str:
    """Sanitize exception message."""
    return sanitize_error_message(str(error))
