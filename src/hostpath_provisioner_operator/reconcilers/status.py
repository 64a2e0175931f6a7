"""Health evaluation and status diffing for the HostPathProvisioner."""

from __future__ import annotations

from typing import Any

from ..builders.common import is_legacy
from ..config import OperatorConfig
from ..constants import (
    COND_DEGRADED,
    CSI_NAME,
    MESSAGE_DEGRADED,
    MULTI_PURPOSE_NAME,
    REASON_DEGRADED,
    REASON_STORAGE_POOL_NOT_READY,
)
from ..store.base import DAEMON_SET, ObjectStore
from ..utils.conditions import (
    STATUS_FALSE,
    STATUS_TRUE,
    find_condition,
    mark_failed,
    update_condition,
)
from ..utils.errors import NotFoundError, StoreError
from .base import BaseReconciler
from .storagepools import StoragePoolReconciler


def daemonset_ready(daemonset: dict[str, Any] | None) -> bool:
    """A DaemonSet is ready when at least one pod runs and every scheduled pod is ready.

    Zero desired pods does not count as ready.
    """
    if daemonset is None:
        return False
    status = daemonset.get("status") or {}
    number_ready = status.get("numberReady", 0)
    return number_ready > 0 and number_ready >= status.get("desiredNumberScheduled", 0)


def _conditions_by_type(status: dict[str, Any]) -> dict[str, dict[str, Any]]:
    return {cond.get("type", ""): cond for cond in status.get("conditions") or []}


def compute_change_set(before: dict[str, Any], after: dict[str, Any]) -> set[str]:
    """List the fields of the CR that differ between two snapshots.

    Conditions are compared per type so that a reordered list is not a
    change. The result holds dotted paths like "metadata.finalizers",
    "status.observedVersion" or "status.conditions.Available".
    """
    changes: set[str] = set()

    before_finalizers = sorted(before.get("metadata", {}).get("finalizers") or [])
    after_finalizers = sorted(after.get("metadata", {}).get("finalizers") or [])
    if before_finalizers != after_finalizers:
        changes.add("metadata.finalizers")

    before_status = before.get("status") or {}
    after_status = after.get("status") or {}
    for key in set(before_status) | set(after_status):
        if key == "conditions":
            continue
        if before_status.get(key) != after_status.get(key):
            changes.add(f"status.{key}")

    before_conditions = _conditions_by_type(before_status)
    after_conditions = _conditions_by_type(after_status)
    for cond_type in set(before_conditions) | set(after_conditions):
        if before_conditions.get(cond_type) != after_conditions.get(cond_type):
            changes.add(f"status.conditions.{cond_type}")
    return changes


class StatusReconciler(BaseReconciler):
    """Derives Degraded, the storage pool statuses and the observed version from the cluster."""

    def __init__(self, store: ObjectStore, config: OperatorConfig, pools: StoragePoolReconciler | None = None):
        super().__init__(store, config)
        self.pools = pools or StoragePoolReconciler(store, config)

    def required_daemonsets(self, cr: dict[str, Any]) -> list[str]:
        if is_legacy(cr):
            return [MULTI_PURPOSE_NAME, CSI_NAME]
        return [CSI_NAME]

    def fetch_daemonsets(self, cr: dict[str, Any]) -> dict[str, dict[str, Any] | None]:
        daemonsets: dict[str, dict[str, Any] | None] = {}
        for name in self.required_daemonsets(cr):
            try:
                daemonsets[name] = self.store.get(DAEMON_SET, name, self.config.namespace)
            except NotFoundError:
                daemonsets[name] = None
        return daemonsets

    def daemonsets_ready(self, cr: dict[str, Any]) -> bool:
        return all(daemonset_ready(ds) for ds in self.fetch_daemonsets(cr).values())

    def reconcile(self, cr: dict[str, Any]) -> bool:
        """Update Degraded, the pool statuses and possibly the observed version.

        Degraded is only raised once a version has been observed, a fresh
        install is given time to roll out. A deployed provisioner with unready
        DaemonSets is marked failed; during an upgrade only Degraded is raised.
        The observed version advances to the target only while nothing is
        degraded.

        Returns:
            True if the provisioner is degraded
        """
        status = cr.setdefault("status", {})
        conditions = status.setdefault("conditions", [])
        daemonsets = self.fetch_daemonsets(cr)
        degraded = not all(daemonset_ready(ds) for ds in daemonsets.values())

        if degraded and status.get("observedVersion"):
            if status.get("observedVersion") == status.get("targetVersion"):
                mark_failed(conditions, REASON_DEGRADED, MESSAGE_DEGRADED)
            else:
                # upgrade in flight keeps Available and Progressing
                update_condition(conditions, COND_DEGRADED, STATUS_TRUE, REASON_DEGRADED, MESSAGE_DEGRADED)
        else:
            current = find_condition(conditions, COND_DEGRADED) or {}
            update_condition(
                conditions, COND_DEGRADED, STATUS_FALSE, current.get("reason", ""), current.get("message", "")
            )

        try:
            status["storagePoolStatuses"] = self.pools.storage_pool_statuses(cr, daemonsets.get(CSI_NAME))
        except StoreError as e:
            self.log_error(cr, "Unable to read storage pool status", error=e, reason=REASON_STORAGE_POOL_NOT_READY)
            mark_failed(conditions, REASON_STORAGE_POOL_NOT_READY, f"Unable to read storage pool status: {e}")
            return True

        if not degraded and status.get("observedVersion") != status.get("targetVersion"):
            status["observedVersion"] = status.get("targetVersion")
            self.log_info(cr, f"Observed version {status['observedVersion']}", event="version", reason="VersionObserved")
        return degraded
