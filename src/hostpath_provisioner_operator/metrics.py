"""Prometheus metrics for the Hostpath Provisioner Operator."""

from __future__ import annotations

import abc

from prometheus_client import Counter, Gauge, Histogram

from .constants import READY_UNKNOWN

# Reconciliation metrics
reconcile_total = Counter(
    "hostpath_provisioner_operator_reconcile_total",
    "Total number of reconciliations",
    ["result"],
)

reconcile_duration_seconds = Histogram(
    "hostpath_provisioner_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Object store metrics
object_operations_total = Counter(
    "hostpath_provisioner_operator_object_operations_total",
    "Total number of create/update/delete calls against the cluster",
    ["kind", "operation"],
)

rate_limit_hits_total = Counter(
    "hostpath_provisioner_operator_rate_limit_hits_total",
    "Total number of throttled Kubernetes API calls",
)

cr_ready = Gauge(
    "kubevirt_hpp_cr_ready",
    "HPP CR Ready: 1 when available, 0 when neither available nor progressing, -1 before the first reconcile",
)


class ReadinessSink(abc.ABC):
    """Receives the readiness signal computed by the reconcile loop."""

    @abc.abstractmethod
    def set_ready(self, value: int) -> None:
        """Publish the readiness value (1, 0 or -1)."""


class PrometheusReadinessSink(ReadinessSink):
    """Publishes readiness on the kubevirt_hpp_cr_ready gauge."""

    def __init__(self, gauge: Gauge = cr_ready):
        self.gauge = gauge
        # 0 is the value alerts fire on, so the boot value must differ
        self.gauge.set(READY_UNKNOWN)

    def set_ready(self, value: int) -> None:
        self.gauge.set(value)
