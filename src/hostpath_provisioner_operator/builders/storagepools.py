"""Builders for storage pool deployments, claims and cleanup jobs.

A storage pool with a pvcTemplate is backed by one PVC per node. A small
deployment pinned to the node mounts that PVC onto the pool path on the host,
so the CSI driver can hand out directories below it. When the pool goes away
a cleanup job on the same node removes what the driver left behind.
"""

from __future__ import annotations

import copy
from typing import Any

from ..config import OperatorConfig
from ..constants import (
    CLEANUP_JOB_PREFIX,
    LABEL_CLEANUP_POOL,
    LABEL_NODE,
    LABEL_STORAGE_POOL,
    PROVISIONER_SERVICE_ACCOUNT_CSI,
    STORAGE_POOL_PREFIX,
)
from .common import bounded_name, image_pull_policy, object_meta, workload_placement

ANNOTATION_POOL_PATH = "hpp.kubevirt.io/storagePoolPath"
HOSTNAME_LABEL = "kubernetes.io/hostname"
POOL_MOUNT_PATH = "/source"


def storage_pools(cr: dict[str, Any]) -> list[dict[str, Any]]:
    return list(cr.get("spec", {}).get("storagePools") or [])


def template_pools(cr: dict[str, Any]) -> list[dict[str, Any]]:
    """Pools that need per node claims and deployments."""
    return [pool for pool in storage_pools(cr) if pool.get("pvcTemplate")]


def pool_object_name(pool_name: str, node_name: str) -> str:
    return bounded_name(STORAGE_POOL_PREFIX, pool_name, node_name)


def cleanup_job_name(pool_name: str, node_name: str) -> str:
    return bounded_name(CLEANUP_JOB_PREFIX, pool_name, node_name)


def node_name(node: dict[str, Any]) -> str:
    return node["metadata"]["name"]


def _pool_labels(pool_name: str, node: str) -> dict[str, str]:
    return {LABEL_STORAGE_POOL: pool_name, LABEL_NODE: node}


def build_pool_pvc(cr: dict[str, Any], pool: dict[str, Any], node: str, config: OperatorConfig) -> dict[str, Any]:
    template = copy.deepcopy(pool["pvcTemplate"])
    spec = template.get("spec", template)
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": object_meta(
            pool_object_name(pool["name"], node),
            cr,
            namespace=config.namespace,
            labels=_pool_labels(pool["name"], node),
        ),
        "spec": spec,
    }


def build_pool_deployment(cr: dict[str, Any], pool: dict[str, Any], node: str, config: OperatorConfig) -> dict[str, Any]:
    name = pool_object_name(pool["name"], node)
    labels = _pool_labels(pool["name"], node)
    placement = workload_placement(cr)
    placement["nodeSelector"] = {HOSTNAME_LABEL: node}
    pod_spec: dict[str, Any] = {
        "serviceAccountName": PROVISIONER_SERVICE_ACCOUNT_CSI,
        "containers": [
            {
                "name": "mounter",
                "image": config.images.operator,
                "imagePullPolicy": image_pull_policy(cr),
                "command": ["/usr/bin/mounter"],
                "args": [
                    "--storagePoolPath", POOL_MOUNT_PATH,
                    "--mountPath", pool["path"],
                    "--hostPath", "/host",
                ],
                "securityContext": {"privileged": True},
                "volumeMounts": [
                    {"name": "data", "mountPath": POOL_MOUNT_PATH},
                    {"name": "host-root", "mountPath": "/host", "mountPropagation": "Bidirectional"},
                ],
                "terminationMessagePolicy": "FallbackToLogsOnError",
            }
        ],
        "volumes": [
            {"name": "data", "persistentVolumeClaim": {"claimName": name}},
            {"name": "host-root", "hostPath": {"path": "/"}},
        ],
    }
    pod_spec.update(placement)
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": object_meta(
            name,
            cr,
            namespace=config.namespace,
            labels=labels,
            annotations={ANNOTATION_POOL_PATH: pool["path"]},
        ),
        "spec": {
            "replicas": 1,
            "strategy": {"type": "Recreate"},
            "selector": {"matchLabels": labels},
            "template": {"metadata": {"labels": labels}, "spec": pod_spec},
        },
    }


def build_cleanup_job(
    cr: dict[str, Any],
    pool_name: str,
    pool_path: str,
    node: str,
    config: OperatorConfig,
) -> dict[str, Any]:
    """Job removing the CSI data directory of a pool from one node."""
    return {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "metadata": object_meta(
            cleanup_job_name(pool_name, node),
            cr,
            namespace=config.namespace,
            labels={LABEL_CLEANUP_POOL: pool_name, LABEL_NODE: node},
        ),
        "spec": {
            "backoffLimit": 6,
            "template": {
                "metadata": {"labels": {LABEL_CLEANUP_POOL: pool_name}},
                "spec": {
                    "restartPolicy": "OnFailure",
                    "serviceAccountName": PROVISIONER_SERVICE_ACCOUNT_CSI,
                    "nodeSelector": {HOSTNAME_LABEL: node},
                    "containers": [
                        {
                            "name": "cleanup",
                            "image": config.images.operator,
                            "imagePullPolicy": image_pull_policy(cr),
                            "command": ["/usr/bin/mounter"],
                            "args": ["--cleanup", "--mountPath", pool_path, "--hostPath", "/host"],
                            "securityContext": {"privileged": True},
                            "volumeMounts": [
                                {"name": "host-root", "mountPath": "/host", "mountPropagation": "Bidirectional"},
                            ],
                        }
                    ],
                    "volumes": [{"name": "host-root", "hostPath": {"path": "/"}}],
                },
            },
        },
    }
