"""Ordered teardown run while the HostPathProvisioner is being deleted."""

from __future__ import annotations

from typing import Any

from ..config import OperatorConfig
from ..constants import (
    CSI_DRIVER_NAME,
    CSI_NAME,
    FINALIZER,
    METRICS_SERVICE_NAME,
    MONITORING_RBAC_NAME,
    MULTI_PURPOSE_NAME,
    PROMETHEUS_RULE_NAME,
    RBAC_NAMES,
    SERVICE_MONITOR_NAME,
)
from ..store.base import (
    CLUSTER_ROLE,
    CLUSTER_ROLE_BINDING,
    CSI_DRIVER,
    PROMETHEUS_RULE,
    ROLE,
    ROLE_BINDING,
    SECURITY_CONTEXT_CONSTRAINTS,
    SERVICE,
    SERVICE_MONITOR,
    ObjectStore,
    ResourceKind,
)
from ..utils.errors import KindNotRegisteredError
from .base import BaseReconciler
from .storagepools import StoragePoolReconciler


def has_finalizer(cr: dict[str, Any]) -> bool:
    return FINALIZER in (cr.get("metadata", {}).get("finalizers") or [])


def add_finalizer(cr: dict[str, Any]) -> bool:
    """Add the finalizer in place, returning True if it was missing."""
    if has_finalizer(cr):
        return False
    cr.setdefault("metadata", {}).setdefault("finalizers", []).append(FINALIZER)
    return True


def remove_finalizer(cr: dict[str, Any]) -> bool:
    """Remove the finalizer in place, returning True if it was present."""
    if not has_finalizer(cr):
        return False
    cr["metadata"]["finalizers"] = [f for f in cr["metadata"]["finalizers"] if f != FINALIZER]
    return True


class DeletionProtocol(BaseReconciler):
    """Removes everything the garbage collector cannot, then releases the CR.

    Namespaced objects carry an owner reference and are collected with the CR.
    Cluster scoped objects and the monitoring objects are deleted explicitly.
    Any failure aborts the sequence before the finalizer is removed, so the
    next trigger starts the teardown again.
    """

    def __init__(self, store: ObjectStore, config: OperatorConfig, pools: StoragePoolReconciler | None = None):
        super().__init__(store, config)
        self.pools = pools or StoragePoolReconciler(store, config)

    def run(self, cr: dict[str, Any]) -> float | None:
        """Advance the teardown.

        Returns:
            Seconds to wait before polling again while pool cleanup is still
            running, None once the finalizer has been removed
        """
        self.pools.clean_deployments(cr)
        requeue = self.pools.reconcile_cleanup(cr, 0)
        if requeue is not None:
            return requeue

        self.delete_security_context_constraints(cr)
        self.delete_monitoring(cr)
        self.delete_rbac(cr)
        self.delete_if_exists(cr, CSI_DRIVER, CSI_DRIVER_NAME)

        if remove_finalizer(cr):
            updated = self.store.update(cr)
            cr["metadata"] = updated.get("metadata", cr["metadata"])
            self.log_info(cr, "Removed finalizer", event="delete", reason="FinalizerRemoved")
        return None

    def _delete_optional(self, cr: dict[str, Any], kind: ResourceKind, name: str, namespace: str | None = None) -> None:
        try:
            self.delete_if_exists(cr, kind, name, namespace)
        except KindNotRegisteredError:
            self.log_info(cr, f"{kind.kind} not served by this cluster, nothing to delete", event="skip", reason="KindNotRegistered")

    def delete_security_context_constraints(self, cr: dict[str, Any]) -> None:
        for name in (MULTI_PURPOSE_NAME, CSI_NAME):
            self._delete_optional(cr, SECURITY_CONTEXT_CONSTRAINTS, name)

    def delete_monitoring(self, cr: dict[str, Any]) -> None:
        namespace = self.config.namespace
        self._delete_optional(cr, PROMETHEUS_RULE, PROMETHEUS_RULE_NAME, namespace)
        self._delete_optional(cr, SERVICE_MONITOR, SERVICE_MONITOR_NAME, namespace)
        self.delete_if_exists(cr, SERVICE, METRICS_SERVICE_NAME, namespace)
        self.delete_if_exists(cr, ROLE_BINDING, MONITORING_RBAC_NAME, namespace)
        self.delete_if_exists(cr, ROLE, MONITORING_RBAC_NAME, namespace)

    def delete_rbac(self, cr: dict[str, Any]) -> None:
        namespace = self.config.namespace
        for name in RBAC_NAMES:
            self.delete_if_exists(cr, CLUSTER_ROLE_BINDING, name)
            self.delete_if_exists(cr, CLUSTER_ROLE, name)
            self.delete_if_exists(cr, ROLE_BINDING, name, namespace)
            self.delete_if_exists(cr, ROLE, name, namespace)
