"""Builders for the desired state of every object the operator owns."""

from .cluster import build_csi_driver, build_security_context_constraints
from .common import is_feature_gate_enabled, is_legacy
from .daemonsets import build_csi_daemonset, build_legacy_daemonset
from .monitoring import build_monitoring_objects
from .rbac import (
    SERVICE_ACCOUNTS,
    build_cluster_role_bindings,
    build_cluster_roles,
    build_role_bindings,
    build_roles,
    build_service_account,
)

__all__ = [
    "SERVICE_ACCOUNTS",
    "build_cluster_role_bindings",
    "build_cluster_roles",
    "build_csi_daemonset",
    "build_csi_driver",
    "build_legacy_daemonset",
    "build_monitoring_objects",
    "build_role_bindings",
    "build_roles",
    "build_security_context_constraints",
    "build_service_account",
    "is_feature_gate_enabled",
    "is_legacy",
]
