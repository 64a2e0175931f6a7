"""Tests for Prometheus metrics."""

from __future__ import annotations

from unittest.mock import MagicMock

from hostpath_provisioner_operator.constants import READY_UNKNOWN
from hostpath_provisioner_operator.metrics import (
    PrometheusReadinessSink,
    cr_ready,
    object_operations_total,
    rate_limit_hits_total,
    reconcile_duration_seconds,
    reconcile_total,
)


class TestMetricsExist:
    """Test that all expected metrics are defined."""

    def test_reconcile_total_exists(self):
        # Prometheus counters don't include "_total" in their _name attribute
        assert reconcile_total._name == "hostpath_provisioner_operator_reconcile"

    def test_reconcile_duration_exists(self):
        assert reconcile_duration_seconds._name == "hostpath_provisioner_operator_reconcile_duration_seconds"

    def test_object_operations_total_exists(self):
        assert object_operations_total._name == "hostpath_provisioner_operator_object_operations"

    def test_rate_limit_hits_total_exists(self):
        assert rate_limit_hits_total._name == "hostpath_provisioner_operator_rate_limit_hits"

    def test_cr_ready_gauge_name(self):
        assert cr_ready._name == "kubevirt_hpp_cr_ready"


class TestPrometheusReadinessSink:
    """Test cases for the readiness gauge."""

    def test_boot_value_is_unknown(self):
        gauge = MagicMock()
        PrometheusReadinessSink(gauge)
        gauge.set.assert_called_once_with(READY_UNKNOWN)

    def test_set_ready(self):
        gauge = MagicMock()
        sink = PrometheusReadinessSink(gauge)
        sink.set_ready(1)
        gauge.set.assert_called_with(1)
