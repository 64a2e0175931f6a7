"""Builders for the Prometheus monitoring objects."""

from __future__ import annotations

from typing import Any

from ..config import OperatorConfig
from ..constants import (
    LABEL_PROMETHEUS,
    METRICS_SERVICE_NAME,
    MONITORING_RBAC_NAME,
    PROMETHEUS_RULE_NAME,
    SERVICE_MONITOR_NAME,
)
from .common import object_meta

PROMETHEUS_SERVICE_ACCOUNT = "prometheus-k8s"
METRICS_PORT_NAME = "metrics"
RUNBOOK_URL_TEMPLATE = "https://kubevirt.io/monitoring/runbooks/{alert}"


def _alert(name: str, expr: str, for_: str, severity: str, summary: str) -> dict[str, Any]:
    return {
        "alert": name,
        "expr": expr,
        "for": for_,
        "annotations": {"summary": summary, "runbook_url": RUNBOOK_URL_TEMPLATE.format(alert=name)},
        "labels": {"severity": severity, "operator_health_impact": "critical" if severity == "critical" else "warning"},
    }


def build_prometheus_rule(cr: dict[str, Any], config: OperatorConfig) -> dict[str, Any]:
    return {
        "apiVersion": "monitoring.coreos.com/v1",
        "kind": "PrometheusRule",
        "metadata": object_meta(PROMETHEUS_RULE_NAME, cr, namespace=config.namespace, labels={LABEL_PROMETHEUS: "true"}),
        "spec": {
            "groups": [
                {
                    "name": "hpp.rules",
                    "rules": [
                        _alert(
                            "HPPOperatorDown",
                            f'kubevirt_hpp_operator_up{{namespace="{config.namespace}"}} == 0',
                            "5m",
                            "warning",
                            "Hostpath Provisioner operator is down",
                        ),
                        _alert(
                            "HPPNotReady",
                            "kubevirt_hpp_cr_ready == 0",
                            "5m",
                            "warning",
                            "Hostpath Provisioner is not available to use",
                        ),
                        _alert(
                            "HPPSharingPoolPathWithOS",
                            "kubevirt_hpp_pool_path_shared_with_os == 1",
                            "1m",
                            "warning",
                            "HPP pool path sharing a filesystem with OS, fix to prevent HPP PVs from causing disk pressure and affecting node operation",
                        ),
                    ],
                }
            ]
        },
    }


def build_service_monitor(cr: dict[str, Any], config: OperatorConfig) -> dict[str, Any]:
    return {
        "apiVersion": "monitoring.coreos.com/v1",
        "kind": "ServiceMonitor",
        "metadata": object_meta(SERVICE_MONITOR_NAME, cr, namespace=config.namespace, labels={LABEL_PROMETHEUS: "true"}),
        "spec": {
            "namespaceSelector": {"matchNames": [config.namespace]},
            "selector": {"matchLabels": {LABEL_PROMETHEUS: "true"}},
            "endpoints": [{"port": METRICS_PORT_NAME, "scheme": "http"}],
        },
    }


def build_metrics_service(cr: dict[str, Any], config: OperatorConfig) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": object_meta(METRICS_SERVICE_NAME, cr, namespace=config.namespace, labels={LABEL_PROMETHEUS: "true"}),
        "spec": {
            "selector": {LABEL_PROMETHEUS: "true"},
            "ports": [
                {
                    "name": METRICS_PORT_NAME,
                    "port": 8080,
                    "targetPort": METRICS_PORT_NAME,
                    "protocol": "TCP",
                }
            ],
            "type": "ClusterIP",
        },
    }


def build_monitoring_role(cr: dict[str, Any], config: OperatorConfig) -> dict[str, Any]:
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "Role",
        "metadata": object_meta(MONITORING_RBAC_NAME, cr, namespace=config.namespace),
        "rules": [
            {"apiGroups": [""], "resources": ["services", "endpoints", "pods"], "verbs": ["get", "list", "watch"]},
        ],
    }


def build_monitoring_role_binding(cr: dict[str, Any], config: OperatorConfig) -> dict[str, Any]:
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "RoleBinding",
        "metadata": object_meta(MONITORING_RBAC_NAME, cr, namespace=config.namespace),
        "roleRef": {"apiGroup": "rbac.authorization.k8s.io", "kind": "Role", "name": MONITORING_RBAC_NAME},
        "subjects": [
            {"kind": "ServiceAccount", "name": PROMETHEUS_SERVICE_ACCOUNT, "namespace": config.monitoring_namespace}
        ],
    }


def build_monitoring_objects(cr: dict[str, Any], config: OperatorConfig) -> list[dict[str, Any]]:
    """All monitoring objects, RBAC and the scrape target before the rule."""
    return [
        build_monitoring_role(cr, config),
        build_monitoring_role_binding(cr, config),
        build_metrics_service(cr, config),
        build_service_monitor(cr, config),
        build_prometheus_rule(cr, config),
    ]
