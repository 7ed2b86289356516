"""Prometheus metrics for kubegress.

All collectors are registered on the default registry and exposed by the
REST API at ``/metrics``.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

reconcile_total = Counter(
    "kubegress_reconcile_total",
    "Reconciliation passes by outcome.",
    ["result"],
)

reconcile_duration_seconds = Histogram(
    "kubegress_reconcile_duration_seconds",
    "Wall time of a single reconciliation pass.",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0),
)

reconciler_calls_total = Counter(
    "kubegress_reconciler_calls_total",
    "Upsert/Delete calls made against the external reconciler.",
    ["operation", "success"],
)

notifications_total = Counter(
    "kubegress_notifications_total",
    "Change notifications received from the collectors.",
    ["kind"],
)

queue_depth = Gauge(
    "kubegress_queue_depth",
    "Ingress identities waiting for reconciliation.",
)

adopted_ingresses = Gauge(
    "kubegress_adopted_ingresses",
    "Ingresses currently adopted and upserted by this controller.",
)
