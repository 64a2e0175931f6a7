"""Converges every owned object kind toward the desired manifests."""

from __future__ import annotations

from typing import Any, Callable

from ..builders import (
    SERVICE_ACCOUNTS,
    build_cluster_role_bindings,
    build_cluster_roles,
    build_csi_daemonset,
    build_csi_driver,
    build_legacy_daemonset,
    build_monitoring_objects,
    build_role_bindings,
    build_roles,
    build_security_context_constraints,
    build_service_account,
    is_legacy,
)
from ..config import OperatorConfig
from ..constants import MULTI_PURPOSE_NAME
from ..store.base import DAEMON_SET, ObjectStore
from ..utils.errors import KindNotRegisteredError
from .base import BaseReconciler
from .storagepools import StoragePoolReconciler


class ResourceReconciler(BaseReconciler):
    """Applies the desired state of all owned kinds in a fixed order.

    Workloads come first, then storage pools, service accounts, RBAC, the
    CSIDriver registration, the SecurityContextConstraints and the monitoring
    objects. The last two are optional: when the cluster does not serve their
    kind they are skipped.
    """

    def __init__(self, store: ObjectStore, config: OperatorConfig, pools: StoragePoolReconciler | None = None):
        super().__init__(store, config)
        self.pools = pools or StoragePoolReconciler(store, config)

    def steps(self) -> list[tuple[str, Callable[[dict[str, Any]], None]]]:
        return [
            ("daemonsets", self.reconcile_daemonsets),
            ("storagepools", self.pools.reconcile),
            ("serviceaccounts", self.reconcile_service_accounts),
            ("clusterroles", self.reconcile_cluster_roles),
            ("clusterrolebindings", self.reconcile_cluster_role_bindings),
            ("roles", self.reconcile_roles),
            ("rolebindings", self.reconcile_role_bindings),
            ("csidriver", self.reconcile_csi_driver),
            ("securitycontextconstraints", self.reconcile_security_context_constraints),
            ("monitoring", self.reconcile_monitoring),
        ]

    def reconcile(self, cr: dict[str, Any]) -> None:
        """Run every step, the first error aborts the pass."""
        for _, step in self.steps():
            step(cr)

    def reconcile_daemonsets(self, cr: dict[str, Any]) -> None:
        if is_legacy(cr):
            self.apply(cr, build_legacy_daemonset(cr, self.config))
        elif self.delete_if_exists(cr, DAEMON_SET, MULTI_PURPOSE_NAME, self.config.namespace):
            self.log_info(cr, "Removed legacy provisioner DaemonSet", event="mode", reason="DriverOnlyMode")
        self.apply(cr, build_csi_daemonset(cr, self.config))

    def reconcile_service_accounts(self, cr: dict[str, Any]) -> None:
        for name in SERVICE_ACCOUNTS:
            self.apply(cr, build_service_account(cr, name, self.config.namespace))

    def reconcile_cluster_roles(self, cr: dict[str, Any]) -> None:
        for role in build_cluster_roles(cr):
            self.apply(cr, role)

    def reconcile_cluster_role_bindings(self, cr: dict[str, Any]) -> None:
        for binding in build_cluster_role_bindings(cr, self.config.namespace):
            self.apply(cr, binding)

    def reconcile_roles(self, cr: dict[str, Any]) -> None:
        for role in build_roles(cr, self.config.namespace):
            self.apply(cr, role)

    def reconcile_role_bindings(self, cr: dict[str, Any]) -> None:
        for binding in build_role_bindings(cr, self.config.namespace):
            self.apply(cr, binding)

    def reconcile_csi_driver(self, cr: dict[str, Any]) -> None:
        self.apply(cr, build_csi_driver(cr))

    def _apply_optional(self, cr: dict[str, Any], objects: list[dict[str, Any]]) -> None:
        try:
            for obj in objects:
                self.apply(cr, obj)
        except KindNotRegisteredError as e:
            self.log_info(cr, f"Skipping {e.kind}, not served by this cluster", event="skip", reason="KindNotRegistered")

    def reconcile_security_context_constraints(self, cr: dict[str, Any]) -> None:
        self._apply_optional(cr, build_security_context_constraints(cr, self.config.namespace))

    def reconcile_monitoring(self, cr: dict[str, Any]) -> None:
        self._apply_optional(cr, build_monitoring_objects(cr, self.config))
