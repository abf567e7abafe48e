"""Prometheus metrics for the Power Monitor Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "power_monitor_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "power_monitor_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

error_total = Counter(
    "power_monitor_operator_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

# Step metrics
step_total = Counter(
    "power_monitor_operator_step_total",
    "Total number of reconcile steps executed, by resulting action",
    ["step", "action"],
)

# Status persistence metrics
status_update_total = Counter(
    "power_monitor_operator_status_update_total",
    "Status write attempts",
    ["kind", "result"],
)

# Credential metrics
token_issued_total = Counter(
    "power_monitor_operator_token_issued_total",
    "Total number of bearer tokens requested for the monitoring service account",
    ["result"],
)

token_expired_total = Counter(
    "power_monitor_operator_token_expired_total",
    "Total number of token secrets deleted by the expiry watcher",
    ["reason"],
)

# API call metrics
api_call_total = Counter(
    "power_monitor_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "power_monitor_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

rate_limit_hits_total = Counter(
    "power_monitor_operator_rate_limit_hits_total",
    "Total number of rate limit hits",
    ["api_type"],
)
