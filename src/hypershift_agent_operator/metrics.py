"""Prometheus metrics for the HyperShift Agent Service Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "hypershift_agent_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "hypershift_agent_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

error_total = Counter(
    "hypershift_agent_operator_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

resource_status_total = Counter(
    "hypershift_agent_operator_resource_status_total",
    "Resource status observations",
    ["kind", "status"],
)

# Spoke client cache metrics
spoke_client_cache_total = Counter(
    "hypershift_agent_operator_spoke_client_cache_total",
    "Spoke client cache lookups",
    ["result"],
)

# Synchronization metrics
sync_operations_total = Counter(
    "hypershift_agent_operator_sync_operations_total",
    "Total number of managed resource operations",
    ["cluster", "kind", "operation"],
)

garbage_collection_warnings_total = Counter(
    "hypershift_agent_operator_garbage_collection_warnings_total",
    "Garbage collection failures tolerated during synchronization",
    ["cluster", "kind"],
)

# API call metrics
api_call_total = Counter(
    "hypershift_agent_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "hypershift_agent_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)
