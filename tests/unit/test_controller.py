"""Tests for the HostPathProvisioner reconcile loop."""

from __future__ import annotations

import itertools
from unittest.mock import patch

import pytest
from conftest import NAMESPACE, VERSION, make_cr, make_node

from hostpath_provisioner_operator.builders.storagepools import cleanup_job_name
from hostpath_provisioner_operator.constants import (
    COND_AVAILABLE,
    COND_DEGRADED,
    COND_PROGRESSING,
    CSI_NAME,
    FINALIZER,
    MULTI_PURPOSE_NAME,
    NOT_READY,
    READY,
)
from hostpath_provisioner_operator.controller import Reconciler, ReconcileResult, readiness_value
from hostpath_provisioner_operator.store.base import (
    CSI_DRIVER,
    DAEMON_SET,
    DEPLOYMENT,
    HOSTPATH_PROVISIONER,
    JOB,
    SECURITY_CONTEXT_CONSTRAINTS,
)
from hostpath_provisioner_operator.store.memory import InMemoryObjectStore
from hostpath_provisioner_operator.utils.conditions import find_condition, mark_deploying, mark_healthy
from hostpath_provisioner_operator.utils.errors import (
    DowngradeError,
    KindNotRegisteredError,
    SingletonViolationError,
)

NAME = "hostpath-provisioner"
FAST_POOL = {"name": "fast", "path": "/var/fast", "pvcTemplate": {"resources": {}}}


def _statuses(cr: dict) -> dict[str, str]:
    return {c["type"]: c["status"] for c in cr["status"]["conditions"]}


def _set_csi_ready(store, ready: int = 3, desired: int = 3) -> None:
    store.set_status(DAEMON_SET, CSI_NAME, {"numberReady": ready, "desiredNumberScheduled": desired}, NAMESPACE)


@pytest.fixture
def reconciler(store, config, recorder, readiness) -> Reconciler:
    return Reconciler(store, config, recorder, readiness)


class TestReadinessValue:
    """Test cases for readiness_value."""

    def test_available(self):
        cr = make_cr()
        cr["status"] = {"conditions": mark_healthy([], "Complete", "ok")}
        assert readiness_value(cr) == READY

    def test_only_progressing_keeps_gauge(self):
        cr = make_cr()
        cr["status"] = {"conditions": mark_deploying([], "DeployStarted", "Started Deployment")}
        assert readiness_value(cr) is None

    def test_neither(self):
        assert readiness_value(make_cr()) == NOT_READY


class TestFirstDeployment:
    """Test cases for a fresh install converging to healthy."""

    def test_first_reconcile_marks_deploying(self, store, reconciler, recorder):
        store.seed(make_cr())

        result = reconciler.reconcile(NAME)

        cr = store.get(HOSTPATH_PROVISIONER, NAME)
        assert result == ReconcileResult()
        assert cr["metadata"]["finalizers"] == [FINALIZER]
        assert _statuses(cr) == {COND_AVAILABLE: "False", COND_PROGRESSING: "True", COND_DEGRADED: "False"}
        assert cr["status"]["operatorVersion"] == VERSION
        assert cr["status"]["targetVersion"] == VERSION
        assert cr["status"].get("observedVersion", "") == ""
        assert recorder.reasons() == ["DeployStarted"]
        store.get(DAEMON_SET, CSI_NAME, NAMESPACE)
        store.get(CSI_DRIVER, "kubevirt.io.hostpath-provisioner")

    def test_converges_to_healthy(self, store, reconciler, recorder, readiness):
        store.seed(make_cr())
        reconciler.reconcile(NAME)
        _set_csi_ready(store)

        reconciler.reconcile(NAME)

        cr = store.get(HOSTPATH_PROVISIONER, NAME)
        assert _statuses(cr) == {COND_AVAILABLE: "True", COND_PROGRESSING: "False", COND_DEGRADED: "False"}
        assert cr["status"]["observedVersion"] == VERSION
        assert cr["status"]["storagePoolStatuses"][0]["phase"] == "Ready"
        assert recorder.reasons() == ["DeployStarted", "ProvisionerHealthy"]

        reconciler.reconcile(NAME)
        assert readiness.values == [NOT_READY, READY]

    def test_steady_state_writes_nothing(self, store, reconciler, recorder):
        store.seed(make_cr())
        reconciler.reconcile(NAME)
        _set_csi_ready(store)
        reconciler.reconcile(NAME)
        mutations = len(store.mutations)
        events = len(recorder.events)

        reconciler.reconcile(NAME)
        reconciler.reconcile(NAME)

        assert len(store.mutations) == mutations
        assert len(recorder.events) == events

    def test_steady_state_ignores_heartbeat_refresh(self, store, reconciler):
        """Later heartbeats alone do not cause a status write."""
        store.seed(make_cr())
        reconciler.reconcile(NAME)
        _set_csi_ready(store)
        reconciler.reconcile(NAME)
        mutations = len(store.mutations)
        clock = (f"2030-01-01T00:00:{second:02d}Z" for second in itertools.count())

        with patch("hostpath_provisioner_operator.utils.conditions._now", side_effect=clock):
            reconciler.reconcile(NAME)
            reconciler.reconcile(NAME)

        assert len(store.mutations) == mutations

    def test_unready_daemonset_after_deploy_marks_failed(self, store, reconciler, readiness):
        store.seed(make_cr())
        reconciler.reconcile(NAME)
        _set_csi_ready(store)
        reconciler.reconcile(NAME)
        _set_csi_ready(store, ready=1, desired=3)

        reconciler.reconcile(NAME)
        reconciler.reconcile(NAME)

        cr = store.get(HOSTPATH_PROVISIONER, NAME)
        assert _statuses(cr) == {COND_AVAILABLE: "False", COND_PROGRESSING: "False", COND_DEGRADED: "True"}
        assert find_condition(cr["status"]["conditions"], COND_DEGRADED)["reason"] == "Degraded"
        assert readiness.values[-1] == NOT_READY

    def test_recovers_after_daemonset_ready_again(self, store, reconciler, recorder):
        store.seed(make_cr())
        reconciler.reconcile(NAME)
        _set_csi_ready(store)
        reconciler.reconcile(NAME)
        _set_csi_ready(store, ready=1, desired=3)
        reconciler.reconcile(NAME)
        _set_csi_ready(store)

        reconciler.reconcile(NAME)

        cr = store.get(HOSTPATH_PROVISIONER, NAME)
        assert _statuses(cr) == {COND_AVAILABLE: "True", COND_PROGRESSING: "False", COND_DEGRADED: "False"}
        assert recorder.reasons()[-1] == "ProvisionerHealthy"

    def test_unready_fresh_install_is_not_degraded(self, store, reconciler):
        store.seed(make_cr())
        reconciler.reconcile(NAME)
        _set_csi_ready(store, ready=1, desired=3)

        reconciler.reconcile(NAME)

        cr = store.get(HOSTPATH_PROVISIONER, NAME)
        assert find_condition(cr["status"]["conditions"], COND_DEGRADED)["status"] == "False"
        assert cr["status"].get("observedVersion", "") == ""

    def test_legacy_mode_creates_both_daemonsets(self, store, reconciler):
        store.seed(make_cr(pathConfig={"path": "/var/hpvolumes"}))

        reconciler.reconcile(NAME)

        store.get(DAEMON_SET, MULTI_PURPOSE_NAME, NAMESPACE)
        store.get(DAEMON_SET, CSI_NAME, NAMESPACE)

    def test_switch_to_driver_only_removes_legacy_daemonset(self, store, reconciler):
        store.seed(make_cr(pathConfig={"path": "/var/hpvolumes"}))
        reconciler.reconcile(NAME)
        cr = store.get(HOSTPATH_PROVISIONER, NAME)
        cr["spec"] = {"storagePools": [{"name": "local", "path": "/var/hpp"}]}
        store.update(cr)

        reconciler.reconcile(NAME)

        assert [d["metadata"]["name"] for d in store.list(DAEMON_SET, NAMESPACE)] == [CSI_NAME]


class TestVersions:
    """Test cases for upgrades and downgrades."""

    def _deployed_cr(self, observed: str) -> dict:
        cr = make_cr()
        cr["metadata"]["finalizers"] = [FINALIZER]
        cr["status"] = {
            "observedVersion": observed,
            "conditions": mark_healthy([], "Complete", "Application Available"),
        }
        return cr

    def test_downgrade_is_refused_without_writes(self, store, reconciler):
        store.seed(self._deployed_cr("2.0.0"))

        with pytest.raises(DowngradeError):
            reconciler.reconcile(NAME)

        assert store.mutations == []

    def test_upgrade(self, store, reconciler, recorder):
        store.seed(self._deployed_cr("1.1.0"))
        reconciler.reconcile(NAME)

        cr = store.get(HOSTPATH_PROVISIONER, NAME)
        assert recorder.events[0] == ("Warning", "UpgradeStarted", f"Started upgrade to version {VERSION}")
        assert _statuses(cr) == {COND_AVAILABLE: "True", COND_PROGRESSING: "True", COND_DEGRADED: "True"}
        assert cr["status"]["observedVersion"] == "1.1.0"

        _set_csi_ready(store)
        reconciler.reconcile(NAME)

        cr = store.get(HOSTPATH_PROVISIONER, NAME)
        assert cr["status"]["observedVersion"] == VERSION
        assert _statuses(cr) == {COND_AVAILABLE: "True", COND_PROGRESSING: "False", COND_DEGRADED: "False"}
        assert recorder.reasons().count("UpgradeStarted") == 1


class TestFailures:
    """Test cases for failing reconciles."""

    def test_more_than_one_cr_writes_nothing(self, store, reconciler):
        store.seed(make_cr("first"))
        store.seed(make_cr("second"))

        with pytest.raises(SingletonViolationError):
            reconciler.reconcile("first")

        assert store.mutations == []

    def test_step_failure_marks_failed_and_raises(self, config, recorder, readiness):
        store = InMemoryObjectStore([make_cr()], unregistered_kinds=[CSI_DRIVER])
        reconciler = Reconciler(store, config, recorder, readiness)

        with pytest.raises(KindNotRegisteredError):
            reconciler.reconcile(NAME)

        cr = store.get(HOSTPATH_PROVISIONER, NAME)
        degraded = find_condition(cr["status"]["conditions"], COND_DEGRADED)
        assert degraded["status"] == "True"
        assert degraded["message"].startswith("Unable to successfully reconcile:")
        assert recorder.reasons() == ["DeployStarted", "ReconcileFailed"]

    def test_repeated_failure_emits_once(self, config, recorder, readiness):
        store = InMemoryObjectStore([make_cr()], unregistered_kinds=[CSI_DRIVER])
        reconciler = Reconciler(store, config, recorder, readiness)

        for _ in range(3):
            with pytest.raises(KindNotRegisteredError):
                reconciler.reconcile(NAME)

        assert recorder.reasons().count("ReconcileFailed") == 1

    def test_optional_kinds_are_skipped(self, config, recorder, readiness):
        store = InMemoryObjectStore([make_cr()], unregistered_kinds=[SECURITY_CONTEXT_CONSTRAINTS])
        reconciler = Reconciler(store, config, recorder, readiness)

        assert reconciler.reconcile(NAME) == ReconcileResult()


class TestStoragePoolCleanup:
    """Test cases for pool cleanup during normal reconciles."""

    def test_removed_pool_requeues_until_cleanup_finished(self, store, reconciler, config):
        store.seed(make_node("node1"))
        store.seed(make_cr(storagePools=[FAST_POOL]))
        reconciler.reconcile(NAME)
        assert len(store.list(DEPLOYMENT, NAMESPACE)) == 1

        cr = store.get(HOSTPATH_PROVISIONER, NAME)
        cr["spec"]["storagePools"] = [{"name": "local", "path": "/var/hpp"}]
        store.update(cr)

        assert reconciler.reconcile(NAME) == ReconcileResult(config.cleanup_requeue_seconds)
        assert store.list(DEPLOYMENT, NAMESPACE) == []

        store.set_status(JOB, cleanup_job_name("fast", "node1"), {"succeeded": 1}, NAMESPACE)
        assert reconciler.reconcile(NAME) == ReconcileResult()
        assert store.list(JOB, NAMESPACE) == []
