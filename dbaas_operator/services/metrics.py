"""
Prometheus metrics for reconcilers, work queues and the provisioning API.

Provides observability into reconcile outcomes and external calls.
"""
from prometheus_client import Counter, Gauge, Histogram

# Reconcile metrics
reconcile_total = Counter(
    "dbaas_operator_reconcile_total",
    "Total number of reconciles",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "dbaas_operator_reconcile_duration_seconds",
    "Time spent in one reconcile",
    ["kind"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60),
)

# Work queue metrics
workqueue_depth = Gauge(
    "dbaas_operator_workqueue_depth",
    "Number of keys waiting in the work queue",
    ["kind"],
)

workqueue_retries_total = Counter(
    "dbaas_operator_workqueue_retries_total",
    "Total number of keys requeued with backoff after a failure",
    ["kind"],
)

# Provisioning API metrics
gateway_requests_total = Counter(
    "dbaas_operator_gateway_requests_total",
    "Total provisioning API requests",
    ["operation", "outcome"],
)

# Leader election
leader_status = Gauge(
    "dbaas_operator_leader",
    "Whether this instance currently holds the reconcile lease",
)
