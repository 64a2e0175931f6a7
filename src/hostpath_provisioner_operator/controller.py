"""The reconcile loop for the HostPathProvisioner custom resource."""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass
from typing import Any

from . import metrics
from .builders.common import is_legacy
from .config import OperatorConfig
from .constants import (
    COND_AVAILABLE,
    COND_DEGRADED,
    COND_PROGRESSING,
    EVENT_REASON_DEPLOY_STARTED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_UPGRADE_STARTED,
    MESSAGE_APPLICATION_AVAILABLE,
    MESSAGE_DEPLOY_STARTED,
    NOT_READY,
    READY,
    REASON_COMPLETE,
)
from .logging import log_reconcile_event
from .metrics import ReadinessSink
from .reconcilers.deletion import DeletionProtocol, add_finalizer
from .reconcilers.resources import ResourceReconciler
from .reconcilers.status import StatusReconciler, compute_change_set
from .reconcilers.storagepools import StoragePoolReconciler
from .store.base import HOSTPATH_PROVISIONER, ObjectStore
from .utils.conditions import (
    find_condition,
    ignore_heartbeat_timestamps,
    is_condition_true,
    mark_deploying,
    mark_failed_healing,
    mark_healthy,
    mark_upgrading,
    same_state,
)
from .utils.context import with_correlation_id
from .utils.errors import NotFoundError, OperatorError, SingletonViolationError
from .utils.events import (
    EventRecorder,
    emit_deploy_started,
    emit_provisioner_healthy,
    emit_reconcile_failed,
    emit_upgrade_started,
)
from .version import can_upgrade

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a successful reconcile; requeue_after asks for another run after that many seconds."""

    requeue_after: float | None = None


def readiness_value(cr: dict[str, Any]) -> int | None:
    """Gauge value for a CR: 1 when Available, 0 when neither Available nor Progressing.

    Returns None while only Progressing, the gauge keeps its previous value.
    """
    conditions = (cr.get("status") or {}).get("conditions") or []
    if is_condition_true(conditions, COND_AVAILABLE):
        return READY
    if not is_condition_true(conditions, COND_PROGRESSING):
        return NOT_READY
    return None


def _transitioned(before: list[dict[str, Any]], after: list[dict[str, Any]], cond_type: str) -> bool:
    return not same_state(find_condition(before, cond_type), find_condition(after, cond_type))


class Reconciler:
    """Converges the cluster toward the single HostPathProvisioner CR.

    Every trigger runs the whole loop. A run either finishes, asks to be
    requeued after a delay, or raises; the caller owns retries and never
    sleeps on behalf of the loop.
    """

    def __init__(
        self,
        store: ObjectStore,
        config: OperatorConfig,
        recorder: EventRecorder,
        readiness: ReadinessSink,
    ):
        self.store = store
        self.config = config
        self.recorder = recorder
        self.readiness = readiness
        self.pools = StoragePoolReconciler(store, config)
        self.resources = ResourceReconciler(store, config, self.pools)
        self.status = StatusReconciler(store, config, self.pools)
        self.deletion = DeletionProtocol(store, config, self.pools)

    def reconcile(self, name: str) -> ReconcileResult:
        """Run one reconcile for the CR with the given name.

        Raises:
            SingletonViolationError: If more than one CR exists
            DowngradeError: If the running operator is older than the deployed version
            StoreError: If a request against the cluster failed
        """
        with with_correlation_id():
            start_time = time.time()
            try:
                result = self._reconcile(name)
            except Exception:
                metrics.reconcile_total.labels(result="failed").inc()
                raise
            finally:
                metrics.reconcile_duration_seconds.observe(time.time() - start_time)
            metrics.reconcile_total.labels(result="requeue" if result.requeue_after else "success").inc()
            return result

    def _reconcile(self, name: str) -> ReconcileResult:
        log_reconcile_event(logger, name, "reconcile", "ReconcileStarted", "Reconciling HostPathProvisioner")

        # Nothing is written while more than one CR exists
        crs = self.store.list(HOSTPATH_PROVISIONER)
        if len(crs) > 1:
            error = SingletonViolationError(len(crs))
            log_reconcile_event(logger, name, "error", "SingletonViolation", str(error), level=logging.ERROR)
            raise error

        try:
            cr = self.store.get(HOSTPATH_PROVISIONER, name)
        except NotFoundError:
            log_reconcile_event(logger, name, "reconcile", "NotFound", "CR not found, assuming it was deleted")
            return ReconcileResult()

        before = copy.deepcopy(cr)
        log_reconcile_event(
            logger, name, "reconcile", "ModeDetected", "Legacy mode" if is_legacy(cr) else "Driver only mode"
        )

        value = readiness_value(cr)
        if value is not None:
            self.readiness.set_ready(value)

        if cr.get("metadata", {}).get("deletionTimestamp"):
            log_reconcile_event(logger, name, "delete", "DeletionStarted", "CR marked for deletion, tearing down")
            requeue = self.deletion.run(cr)
            return ReconcileResult(requeue_after=requeue)

        return self._reconcile_normal(name, cr, before)

    def _reconcile_normal(self, name: str, cr: dict[str, Any], before: dict[str, Any]) -> ReconcileResult:
        if add_finalizer(cr):
            updated = self.store.update(cr)
            cr["metadata"] = updated["metadata"]
            before["metadata"] = copy.deepcopy(updated["metadata"])
            log_reconcile_event(logger, name, "update", "FinalizerAdded", "Added finalizer")

        version = self.config.operator_version
        status = cr.setdefault("status", {})
        conditions = status.setdefault("conditions", [])
        before_conditions = (before.get("status") or {}).get("conditions") or []
        status["operatorVersion"] = version
        status["targetVersion"] = version

        upgrade = can_upgrade(status.get("observedVersion", ""), version)
        if not status.get("observedVersion"):
            mark_deploying(conditions, EVENT_REASON_DEPLOY_STARTED, MESSAGE_DEPLOY_STARTED)
            if _transitioned(before_conditions, conditions, COND_PROGRESSING):
                emit_deploy_started(self.recorder, cr)
        elif upgrade:
            mark_upgrading(conditions, EVENT_REASON_UPGRADE_STARTED, f"Started upgrade to version {version}")
            if _transitioned(before_conditions, conditions, COND_PROGRESSING):
                log_reconcile_event(
                    logger, name, "upgrade", "UpgradeStarted", f"Upgrading from {status.get('observedVersion')} to {version}"
                )
                emit_upgrade_started(self.recorder, cr, version)

        requeue: float | None = None
        error: OperatorError | None = None
        try:
            self.resources.reconcile(cr)
            if self.status.daemonsets_ready(cr):
                mark_healthy(conditions, REASON_COMPLETE, MESSAGE_APPLICATION_AVAILABLE)
                if _transitioned(before_conditions, conditions, COND_AVAILABLE):
                    emit_provisioner_healthy(self.recorder, cr)
            requeue = self.pools.reconcile_cleanup(cr, self.pools.expected_deployment_count(cr))
            self.status.reconcile(cr)
        except OperatorError as e:
            error = e
            message = f"Unable to successfully reconcile: {e}"
            log_reconcile_event(
                logger, name, "error", EVENT_REASON_RECONCILE_FAILED, message, level=logging.ERROR,
                error_type=type(e).__name__,
            )
            mark_failed_healing(conditions, EVENT_REASON_RECONCILE_FAILED, message)
            if _transitioned(before_conditions, conditions, COND_DEGRADED):
                emit_reconcile_failed(self.recorder, cr, message)

        ignore_heartbeat_timestamps(before_conditions, conditions)
        self._persist(name, before, cr)

        if error is not None:
            raise error
        if requeue is not None:
            log_reconcile_event(logger, name, "requeue", "RequeueScheduled", f"Requeue after {requeue}s")
        return ReconcileResult(requeue_after=requeue)

    def _persist(self, name: str, before: dict[str, Any], cr: dict[str, Any]) -> None:
        changes = compute_change_set(before, cr)
        if not changes:
            return
        if "metadata.finalizers" in changes:
            updated = self.store.update(cr)
            cr["metadata"] = updated["metadata"]
        if any(change.startswith("status.") for change in changes):
            self.store.update_status(cr)
        log_reconcile_event(
            logger, name, "update", "StatusUpdated", "Persisted CR changes", changes=sorted(changes)
        )
