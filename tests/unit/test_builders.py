"""Tests for the manifest builders."""

from __future__ import annotations

import json

from conftest import NAMESPACE, make_cr

from hostpath_provisioner_operator.builders import (
    build_cluster_role_bindings,
    build_cluster_roles,
    build_csi_daemonset,
    build_csi_driver,
    build_legacy_daemonset,
    build_monitoring_objects,
    build_security_context_constraints,
    is_legacy,
)
from hostpath_provisioner_operator.builders.common import bounded_name, common_labels, object_meta
from hostpath_provisioner_operator.builders.storagepools import (
    ANNOTATION_POOL_PATH,
    build_cleanup_job,
    build_pool_deployment,
    build_pool_pvc,
    pool_object_name,
    template_pools,
)
from hostpath_provisioner_operator.constants import (
    CSI_NAME,
    LABEL_CLEANUP_POOL,
    LABEL_NODE,
    LABEL_STORAGE_POOL,
    MULTI_PURPOSE_NAME,
)

TEMPLATE_POOL = {
    "name": "fast",
    "path": "/var/fast",
    "pvcTemplate": {"accessModes": ["ReadWriteOnce"], "resources": {"requests": {"storage": "10Gi"}}},
}


def _container_names(daemonset: dict) -> list[str]:
    return [c["name"] for c in daemonset["spec"]["template"]["spec"]["containers"]]


class TestCommon:
    """Test cases for the shared builder helpers."""

    def test_is_legacy(self):
        assert is_legacy(make_cr(pathConfig={"path": "/var/hpvolumes"}))
        assert not is_legacy(make_cr())

    def test_object_meta_owned(self):
        cr = make_cr()
        meta = object_meta("x", cr, namespace=NAMESPACE, labels={"a": "b"})

        assert meta["namespace"] == NAMESPACE
        assert meta["labels"] == common_labels({"a": "b"})
        assert meta["ownerReferences"][0]["uid"] == "uid-hostpath-provisioner"
        assert meta["ownerReferences"][0]["controller"] is True

    def test_object_meta_cluster_scoped_has_no_owner(self):
        meta = object_meta("x", make_cr(), owned=False)
        assert "ownerReferences" not in meta
        assert "namespace" not in meta

    def test_bounded_name_short(self):
        assert bounded_name("hpp-pool", "local", "node1") == "hpp-pool-local-node1"

    def test_bounded_name_long_is_unique_and_valid(self):
        first = bounded_name("hpp-pool", "a" * 40, "node-" + "x" * 30)
        second = bounded_name("hpp-pool", "a" * 40, "node-" + "y" * 30)

        assert len(first) <= 63
        assert first != second


class TestDaemonSets:
    """Test cases for the DaemonSet builders."""

    def test_csi_daemonset(self, config):
        ds = build_csi_daemonset(make_cr(), config)

        assert ds["metadata"]["name"] == CSI_NAME
        assert ds["metadata"]["namespace"] == NAMESPACE
        assert "csi-snapshotter" not in _container_names(ds)
        args = ds["spec"]["template"]["spec"]["containers"][0]["args"]
        pools_arg = next(a for a in args if a.startswith("--storagepoolsource="))
        assert json.loads(pools_arg.split("=", 1)[1]) == [{"name": "local", "path": "/var/storagepools/local"}]

    def test_csi_daemonset_snapshotting(self, config):
        cr = make_cr(storagePools=[{"name": "local", "path": "/var/hpp"}], featureGates=["Snapshotting"])
        assert "csi-snapshotter" in _container_names(build_csi_daemonset(cr, config))

    def test_csi_daemonset_legacy_pool(self, config):
        ds = build_csi_daemonset(make_cr(pathConfig={"path": "/var/hpvolumes"}), config)
        volumes = ds["spec"]["template"]["spec"]["volumes"]
        assert {"name": "legacy-data-dir", "hostPath": {"path": "/var/hpvolumes", "type": "DirectoryOrCreate"}} in volumes

    def test_workload_placement(self, config):
        cr = make_cr(
            storagePools=[{"name": "local", "path": "/var/hpp"}],
            workload={"nodeSelector": {"role": "storage"}},
        )
        pod_spec = build_csi_daemonset(cr, config)["spec"]["template"]["spec"]
        assert pod_spec["nodeSelector"] == {"role": "storage"}

    def test_legacy_daemonset(self, config):
        cr = make_cr(pathConfig={"path": "/var/hpvolumes", "useNamingPrefix": True})
        ds = build_legacy_daemonset(cr, config)

        assert ds["metadata"]["name"] == MULTI_PURPOSE_NAME
        env = {e["name"]: e.get("value") for e in ds["spec"]["template"]["spec"]["containers"][0]["env"]}
        assert env["USE_NAMING_PREFIX"] == "true"


class TestClusterObjects:
    """Test cases for cluster scoped objects."""

    def test_csi_driver(self):
        driver = build_csi_driver(make_cr())
        assert driver["metadata"]["name"] == "kubevirt.io.hostpath-provisioner"
        assert driver["spec"]["attachRequired"] is False

    def test_scc_per_mode(self):
        assert [s["metadata"]["name"] for s in build_security_context_constraints(make_cr(), NAMESPACE)] == [CSI_NAME]
        legacy = make_cr(pathConfig={"path": "/var/hpvolumes"})
        assert [s["metadata"]["name"] for s in build_security_context_constraints(legacy, NAMESPACE)] == [
            MULTI_PURPOSE_NAME,
            CSI_NAME,
        ]

    def test_snapshot_rules_only_with_gate(self):
        def resources(cr):
            return {r for role in build_cluster_roles(cr) for rule in role["rules"] for r in rule["resources"]}

        assert "volumesnapshots" not in resources(make_cr())
        gated = make_cr(storagePools=[{"name": "local", "path": "/var/hpp"}], featureGates=["Snapshotting"])
        assert "volumesnapshots" in resources(gated)

    def test_cluster_role_bindings_point_at_namespace(self):
        for binding in build_cluster_role_bindings(make_cr(), NAMESPACE):
            assert binding["subjects"][0]["namespace"] == NAMESPACE

    def test_monitoring_objects_order(self, config):
        kinds = [o["kind"] for o in build_monitoring_objects(make_cr(), config)]
        assert kinds == ["Role", "RoleBinding", "Service", "ServiceMonitor", "PrometheusRule"]


class TestStoragePoolBuilders:
    """Test cases for the storage pool builders."""

    def test_template_pools(self):
        cr = make_cr(storagePools=[{"name": "local", "path": "/var/hpp"}, TEMPLATE_POOL])
        assert [p["name"] for p in template_pools(cr)] == ["fast"]

    def test_pool_pvc(self, config):
        pvc = build_pool_pvc(make_cr(), TEMPLATE_POOL, "node1", config)

        assert pvc["metadata"]["name"] == pool_object_name("fast", "node1")
        assert pvc["spec"]["resources"]["requests"]["storage"] == "10Gi"
        assert pvc["metadata"]["labels"][LABEL_STORAGE_POOL] == "fast"

    def test_pool_deployment_pinned_to_node(self, config):
        deployment = build_pool_deployment(make_cr(), TEMPLATE_POOL, "node1", config)
        meta = deployment["metadata"]

        assert meta["annotations"][ANNOTATION_POOL_PATH] == "/var/fast"
        assert meta["labels"][LABEL_NODE] == "node1"
        assert deployment["spec"]["template"]["spec"]["nodeSelector"] == {"kubernetes.io/hostname": "node1"}

    def test_cleanup_job(self, config):
        job = build_cleanup_job(make_cr(), "fast", "/var/fast", "node1", config)

        assert job["metadata"]["labels"][LABEL_CLEANUP_POOL] == "fast"
        assert "/var/fast" in job["spec"]["template"]["spec"]["containers"][0]["args"]
