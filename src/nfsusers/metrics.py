"""Prometheus metrics definitions for the provisioner."""

from prometheus_client import Counter, Histogram

# Provisioning is dominated by archive extraction (10ms ~ 5min)
_BUCKETS_PROVISION = (
    0.01, 0.05, 0.1, 0.25, 0.5,
    1, 2.5, 5, 10, 30,
    60, 120, 300,
)

PROVISION_DURATION = Histogram(
    "nfsusers_provision_duration_seconds",
    "Duration of provision calls",
    ["outcome"],  # created, reused, failed
    buckets=_BUCKETS_PROVISION,
)

ERRORS = Counter(
    "nfsusers_errors_total",
    "Total provisioner errors",
    ["operation", "error_code"],  # operation: provision, delete
)

DELETES = Counter(
    "nfsusers_delete_total",
    "Total delete calls",
    ["policy"],  # retain, archive
)
