"""Reconciliation of storage pool deployments and their cleanup jobs."""

from __future__ import annotations

from typing import Any

from ..builders.common import common_labels
from ..builders.storagepools import (
    ANNOTATION_POOL_PATH,
    build_cleanup_job,
    build_pool_deployment,
    build_pool_pvc,
    node_name,
    pool_object_name,
    storage_pools,
    template_pools,
)
from ..constants import LABEL_CLEANUP_POOL, LABEL_NODE, LABEL_STORAGE_POOL
from ..store.base import DEPLOYMENT, JOB, NODE, PERSISTENT_VOLUME_CLAIM
from .base import BaseReconciler

PHASE_READY = "Ready"
PHASE_NOT_READY = "NotReady"


def _has_label(obj: dict[str, Any], label: str) -> bool:
    return label in (obj.get("metadata", {}).get("labels") or {})


def job_succeeded(job: dict[str, Any]) -> bool:
    return (job.get("status") or {}).get("succeeded", 0) >= 1


def deployment_ready(deployment: dict[str, Any]) -> bool:
    return (deployment.get("status") or {}).get("readyReplicas", 0) >= 1


class StoragePoolReconciler(BaseReconciler):
    """Keeps one claim and one mounter deployment per node for every pvcTemplate pool.

    Deployments of pools that are no longer declared are removed and replaced
    by a cleanup job on the same node. The caller polls reconcile_cleanup until
    those jobs have finished.
    """

    def eligible_nodes(self, cr: dict[str, Any]) -> list[str]:
        """Names of the nodes the workloads are placed on."""
        selector = (cr.get("spec", {}).get("workload") or {}).get("nodeSelector") or None
        return sorted(node_name(node) for node in self.store.list(NODE, label_selector=selector))

    def expected_deployment_count(self, cr: dict[str, Any]) -> int:
        pools = template_pools(cr)
        if not pools:
            return 0
        return len(pools) * len(self.eligible_nodes(cr))

    def current_pool_deployments(self) -> list[dict[str, Any]]:
        deployments = self.store.list(DEPLOYMENT, self.config.namespace, common_labels())
        return [d for d in deployments if _has_label(d, LABEL_STORAGE_POOL)]

    def cleanup_jobs(self) -> list[dict[str, Any]]:
        jobs = self.store.list(JOB, self.config.namespace, common_labels())
        return [j for j in jobs if _has_label(j, LABEL_CLEANUP_POOL)]

    def reconcile(self, cr: dict[str, Any]) -> None:
        """Apply claims and deployments for declared pools, then clean up the rest."""
        pools = template_pools(cr)
        expected: set[str] = set()
        if pools:
            for node in self.eligible_nodes(cr):
                for pool in pools:
                    expected.add(pool_object_name(pool["name"], node))
                    # Claim specs are immutable once bound
                    self.apply(cr, build_pool_pvc(cr, pool, node, self.config), create_only=True)
                    self.apply(cr, build_pool_deployment(cr, pool, node, self.config))
        self.clean_deployments(cr, expected)

    def clean_deployments(self, cr: dict[str, Any], expected: set[str] | frozenset[str] = frozenset()) -> None:
        """Remove pool deployments not in expected and start a cleanup job for each."""
        for deployment in self.current_pool_deployments():
            meta = deployment["metadata"]
            name = meta["name"]
            if name in expected or meta.get("deletionTimestamp"):
                continue
            labels = meta.get("labels") or {}
            pool_path = (meta.get("annotations") or {}).get(ANNOTATION_POOL_PATH)
            self.delete_if_exists(cr, DEPLOYMENT, name, self.config.namespace)
            self.delete_if_exists(cr, PERSISTENT_VOLUME_CLAIM, name, self.config.namespace)
            if pool_path and labels.get(LABEL_NODE):
                job = build_cleanup_job(cr, labels[LABEL_STORAGE_POOL], pool_path, labels[LABEL_NODE], self.config)
                self.apply(cr, job, create_only=True)
            else:
                self.log_info(
                    cr,
                    f"Pool deployment {name} has no path or node, skipping cleanup job",
                    event="cleanup",
                    reason="CleanupSkipped",
                )

    def cleanup_finished(self) -> bool:
        return all(job_succeeded(job) for job in self.cleanup_jobs())

    def remove_cleanup_jobs(self, cr: dict[str, Any]) -> None:
        for job in self.cleanup_jobs():
            if job_succeeded(job):
                self.delete_if_exists(cr, JOB, job["metadata"]["name"], self.config.namespace)

    def reconcile_cleanup(self, cr: dict[str, Any], target: int) -> float | None:
        """Poll cleanup convergence.

        Args:
            cr: The HostPathProvisioner
            target: Number of pool deployments expected to remain

        Returns:
            Seconds to wait before polling again, or None once converged and
            the finished cleanup jobs have been removed
        """
        active = len(self.current_pool_deployments())
        if active > target or not self.cleanup_finished():
            self.log_info(
                cr,
                f"Waiting for storage pool cleanup, {active} deployments active, target {target}",
                event="requeue",
                reason="CleanupPending",
            )
            return self.config.cleanup_requeue_seconds
        self.remove_cleanup_jobs(cr)
        return None

    def storage_pool_statuses(self, cr: dict[str, Any], csi_daemonset: dict[str, Any] | None) -> list[dict[str, Any]]:
        """Per pool readiness for status.storagePoolStatuses.

        Pools backed by a pvcTemplate count their mounter deployments. Plain
        host path pools are served directly by the CSI DaemonSet.
        """
        statuses = []
        node_count: int | None = None
        ds_status = (csi_daemonset or {}).get("status") or {}
        for pool in storage_pools(cr):
            if pool.get("pvcTemplate"):
                if node_count is None:
                    node_count = len(self.eligible_nodes(cr))
                deployments = self.store.list(
                    DEPLOYMENT, self.config.namespace, {LABEL_STORAGE_POOL: pool["name"]}
                )
                ready = sum(1 for d in deployments if deployment_ready(d))
                desired = node_count
            else:
                ready = ds_status.get("numberReady", 0)
                desired = ds_status.get("desiredNumberScheduled", 0)
            statuses.append(
                {
                    "name": pool["name"],
                    "phase": PHASE_READY if desired > 0 and ready >= desired else PHASE_NOT_READY,
                    "readyCount": ready,
                    "desiredCount": desired,
                }
            )
        return statuses
