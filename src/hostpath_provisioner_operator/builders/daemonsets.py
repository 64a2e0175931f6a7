"""Builders for the provisioner DaemonSets."""

from __future__ import annotations

import json
from typing import Any

from ..config import OperatorConfig
from ..constants import (
    CSI_DRIVER_NAME,
    CSI_NAME,
    FEATURE_GATE_SNAPSHOTTING,
    LABEL_PROMETHEUS,
    LEGACY_PROVISIONER_NAME,
    MULTI_PURPOSE_NAME,
    PROVISIONER_SERVICE_ACCOUNT,
    PROVISIONER_SERVICE_ACCOUNT_CSI,
)
from .common import (
    image_pull_policy,
    is_feature_gate_enabled,
    is_legacy,
    object_meta,
    workload_placement,
)

LEGACY_VOLUME_DIR = "/var/hpvolumes"
CSI_SOCKET_DIR = "/csi"
KUBELET_DIR = "/var/lib/kubelet"
STORAGE_POOL_MOUNT_ROOT = "/var/storagepools"


def _pod_template(cr: dict[str, Any], app_label: str, service_account: str, containers: list, volumes: list) -> dict:
    pod_spec: dict[str, Any] = {
        "serviceAccountName": service_account,
        "containers": containers,
        "volumes": volumes,
    }
    pod_spec.update(workload_placement(cr))
    return {
        "metadata": {"labels": {"k8s-app": app_label, LABEL_PROMETHEUS: "true"}},
        "spec": pod_spec,
    }


def _daemonset(cr: dict[str, Any], name: str, namespace: str, template: dict[str, Any]) -> dict[str, Any]:
    return {
        "apiVersion": "apps/v1",
        "kind": "DaemonSet",
        "metadata": object_meta(name, cr, namespace=namespace),
        "spec": {
            "selector": {"matchLabels": {"k8s-app": name}},
            "updateStrategy": {"type": "RollingUpdate"},
            "template": template,
        },
    }


def storage_pool_paths(cr: dict[str, Any]) -> list[dict[str, str]]:
    """Pools the CSI driver serves, in the form passed to the driver container."""
    spec = cr.get("spec", {})
    if is_legacy(cr):
        return [{"name": "legacy", "path": spec["pathConfig"]["path"]}]
    return [
        {"name": pool["name"], "path": pool["path"]}
        for pool in spec.get("storagePools") or []
    ]


def build_legacy_daemonset(cr: dict[str, Any], config: OperatorConfig) -> dict[str, Any]:
    """DaemonSet running the path based provisioner (legacy mode only)."""
    path_config = cr["spec"]["pathConfig"]
    container = {
        "name": MULTI_PURPOSE_NAME,
        "image": config.images.provisioner,
        "imagePullPolicy": image_pull_policy(cr),
        "env": [
            {"name": "USE_NAMING_PREFIX", "value": str(bool(path_config.get("useNamingPrefix", False))).lower()},
            {"name": "NODE_NAME", "valueFrom": {"fieldRef": {"fieldPath": "spec.nodeName"}}},
            {"name": "PV_DIR", "value": LEGACY_VOLUME_DIR},
            {"name": "PROVISIONER_NAME", "value": LEGACY_PROVISIONER_NAME},
        ],
        "volumeMounts": [{"name": "pv-volume", "mountPath": LEGACY_VOLUME_DIR}],
        "terminationMessagePolicy": "FallbackToLogsOnError",
    }
    volumes = [{"name": "pv-volume", "hostPath": {"path": path_config["path"]}}]
    template = _pod_template(cr, MULTI_PURPOSE_NAME, PROVISIONER_SERVICE_ACCOUNT, [container], volumes)
    return _daemonset(cr, MULTI_PURPOSE_NAME, config.namespace, template)


def build_csi_daemonset(cr: dict[str, Any], config: OperatorConfig) -> dict[str, Any]:
    """DaemonSet running the CSI driver and its sidecars."""
    pull_policy = image_pull_policy(cr)
    pools = storage_pool_paths(cr)
    socket_env = {"name": "CSI_ENDPOINT", "value": f"unix://{CSI_SOCKET_DIR}/csi.sock"}

    driver_mounts = [
        {"name": "socket-dir", "mountPath": CSI_SOCKET_DIR},
        {"name": "mountpoint-dir", "mountPath": f"{KUBELET_DIR}/pods", "mountPropagation": "Bidirectional"},
        {"name": "plugins-dir", "mountPath": f"{KUBELET_DIR}/plugins", "mountPropagation": "Bidirectional"},
    ]
    volumes: list[dict[str, Any]] = [
        {"name": "socket-dir", "hostPath": {"path": f"{KUBELET_DIR}/plugins/csi-hostpath", "type": "DirectoryOrCreate"}},
        {"name": "mountpoint-dir", "hostPath": {"path": f"{KUBELET_DIR}/pods", "type": "DirectoryOrCreate"}},
        {"name": "registration-dir", "hostPath": {"path": f"{KUBELET_DIR}/plugins_registry", "type": "Directory"}},
        {"name": "plugins-dir", "hostPath": {"path": f"{KUBELET_DIR}/plugins", "type": "Directory"}},
    ]
    for pool in pools:
        volume_name = f"{pool['name']}-data-dir"
        driver_mounts.append({"name": volume_name, "mountPath": f"{STORAGE_POOL_MOUNT_ROOT}/{pool['name']}"})
        volumes.append({"name": volume_name, "hostPath": {"path": pool["path"], "type": "DirectoryOrCreate"}})

    containers = [
        {
            "name": "hostpath-provisioner",
            "image": config.images.csi_provisioner,
            "imagePullPolicy": pull_policy,
            "args": [
                "--drivername=" + CSI_DRIVER_NAME,
                "--v=" + config.verbosity,
                "--endpoint=$(CSI_ENDPOINT)",
                "--nodeid=$(NODE_NAME)",
                "--storagepoolsource=" + json.dumps(
                    [{"name": p["name"], "path": f"{STORAGE_POOL_MOUNT_ROOT}/{p['name']}"} for p in pools]
                ),
            ],
            "env": [
                socket_env,
                {"name": "NODE_NAME", "valueFrom": {"fieldRef": {"fieldPath": "spec.nodeName"}}},
            ],
            "securityContext": {"privileged": True},
            "ports": [{"name": "healthz", "containerPort": 9898, "protocol": "TCP"}],
            "volumeMounts": driver_mounts,
            "terminationMessagePolicy": "FallbackToLogsOnError",
        },
        {
            "name": "node-driver-registrar",
            "image": config.images.node_driver_registrar,
            "imagePullPolicy": pull_policy,
            "args": [
                "--v=" + config.verbosity,
                f"--csi-address={CSI_SOCKET_DIR}/csi.sock",
                f"--kubelet-registration-path={KUBELET_DIR}/plugins/csi-hostpath/csi.sock",
            ],
            "securityContext": {"privileged": True},
            "volumeMounts": [
                {"name": "socket-dir", "mountPath": CSI_SOCKET_DIR},
                {"name": "registration-dir", "mountPath": "/registration"},
            ],
        },
        {
            "name": "liveness-probe",
            "image": config.images.liveness_probe,
            "imagePullPolicy": pull_policy,
            "args": [f"--csi-address={CSI_SOCKET_DIR}/csi.sock", "--health-port=9898"],
            "volumeMounts": [{"name": "socket-dir", "mountPath": CSI_SOCKET_DIR}],
        },
        {
            "name": "csi-provisioner",
            "image": config.images.csi_provisioner,
            "imagePullPolicy": pull_policy,
            "args": [
                "--v=" + config.verbosity,
                f"--csi-address={CSI_SOCKET_DIR}/csi.sock",
                "--feature-gates=Topology=true",
                "--enable-capacity=true",
                "--capacity-for-immediate-binding=true",
                "--extra-create-metadata",
                "--immediate-topology=false",
                "--strict-topology=true",
                "--node-deployment=true",
            ],
            "env": [
                {"name": "NODE_NAME", "valueFrom": {"fieldRef": {"fieldPath": "spec.nodeName"}}},
                {"name": "NAMESPACE", "valueFrom": {"fieldRef": {"fieldPath": "metadata.namespace"}}},
                {"name": "POD_NAME", "valueFrom": {"fieldRef": {"fieldPath": "metadata.name"}}},
            ],
            "securityContext": {"privileged": True},
            "volumeMounts": [{"name": "socket-dir", "mountPath": CSI_SOCKET_DIR}],
        },
    ]
    if is_feature_gate_enabled(cr, FEATURE_GATE_SNAPSHOTTING):
        containers.append(
            {
                "name": "csi-snapshotter",
                "image": config.images.csi_snapshotter,
                "imagePullPolicy": pull_policy,
                "args": [
                    "--v=" + config.verbosity,
                    f"--csi-address={CSI_SOCKET_DIR}/csi.sock",
                    "--node-deployment=true",
                ],
                "env": [{"name": "NODE_NAME", "valueFrom": {"fieldRef": {"fieldPath": "spec.nodeName"}}}],
                "volumeMounts": [{"name": "socket-dir", "mountPath": CSI_SOCKET_DIR}],
            }
        )

    template = _pod_template(cr, CSI_NAME, PROVISIONER_SERVICE_ACCOUNT_CSI, containers, volumes)
    return _daemonset(cr, CSI_NAME, config.namespace, template)
