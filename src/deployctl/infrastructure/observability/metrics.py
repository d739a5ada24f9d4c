"""Prometheus metrics configuration."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
)

from deployctl.config import APP_VERSION


# Application info
APP_INFO = Info("deployctl", "Deployment controller application info")
APP_INFO.info({
    "version": APP_VERSION,
    "service": "deployment-controller",
})

# Controller operation metrics
OPERATIONS_TOTAL = Counter(
    "deployctl_operations_total",
    "Total number of controller operations by terminal outcome",
    ["kind", "outcome", "error_kind"],
)

OPERATION_DURATION = Histogram(
    "deployctl_operation_duration_seconds",
    "Time from lock acquisition to terminal event",
    ["kind"],
    buckets=[5, 15, 30, 60, 120, 300, 600, 900],
)

OPERATIONS_IN_FLIGHT = Gauge(
    "deployctl_operations_in_flight",
    "Number of operations currently holding a service lock",
)

BUSY_REJECTIONS = Counter(
    "deployctl_busy_rejections_total",
    "Operations rejected because the service lock was held",
    ["kind"],
)

# Change coordinator metrics
CHANGE_PHASE_TRANSITIONS = Counter(
    "deployctl_change_phase_transitions_total",
    "Preview/apply phase transitions",
    ["phase"],
)

CHANGE_POLLS = Counter(
    "deployctl_change_polls_total",
    "Backend status polls issued by the change coordinator",
    ["step"],  # "preview", "stabilization"
)

CHANGE_FAILURES = Counter(
    "deployctl_change_failures_total",
    "Classified preview/apply failures",
    ["failure"],
)

# Scanner metrics
SCANS_TOTAL = Counter(
    "deployctl_scans_total",
    "Vulnerability scans requested by deployments",
    ["result"],  # "passed", "rejected", "error"
)

# Collaborator metrics
NOTIFICATION_FAILURES = Counter(
    "deployctl_notification_failures_total",
    "Lifecycle events that a notification sink failed to accept",
    ["event_type"],
)

DISTRIBUTED_LOCK_OPERATIONS = Counter(
    "deployctl_lock_operations_total",
    "Total service lock operations",
    ["operation", "result"],  # operation: acquire/release/extend, result: success/failure
)
