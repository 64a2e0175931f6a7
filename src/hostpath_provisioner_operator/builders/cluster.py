"""Builders for the CSIDriver registration and the SecurityContextConstraints."""

from __future__ import annotations

from typing import Any

from ..constants import (
    CSI_DRIVER_NAME,
    CSI_NAME,
    MULTI_PURPOSE_NAME,
    PROVISIONER_SERVICE_ACCOUNT,
    PROVISIONER_SERVICE_ACCOUNT_CSI,
)
from .common import is_legacy, object_meta


def build_csi_driver(cr: dict[str, Any]) -> dict[str, Any]:
    return {
        "apiVersion": "storage.k8s.io/v1",
        "kind": "CSIDriver",
        "metadata": object_meta(CSI_DRIVER_NAME, cr, owned=False),
        "spec": {
            "attachRequired": False,
            "podInfoOnMount": True,
            "storageCapacity": True,
            "volumeLifecycleModes": ["Persistent"],
        },
    }


def _scc(cr: dict[str, Any], name: str, service_account: str, namespace: str, privileged: bool) -> dict[str, Any]:
    return {
        "apiVersion": "security.openshift.io/v1",
        "kind": "SecurityContextConstraints",
        "metadata": object_meta(name, cr, owned=False),
        "allowPrivilegedContainer": privileged,
        "allowHostDirVolumePlugin": True,
        "allowHostIPC": False,
        "allowHostNetwork": False,
        "allowHostPID": False,
        "allowHostPorts": False,
        "readOnlyRootFilesystem": False,
        "requiredDropCapabilities": ["KILL", "MKNOD", "SETUID", "SETGID"],
        "runAsUser": {"type": "RunAsAny"},
        "seLinuxContext": {"type": "RunAsAny"},
        "fsGroup": {"type": "RunAsAny"},
        "supplementalGroups": {"type": "RunAsAny"},
        "users": [f"system:serviceaccount:{namespace}:{service_account}"],
        "volumes": ["hostPath", "secret", "configMap", "projected", "emptyDir", "persistentVolumeClaim"],
    }


def build_security_context_constraints(cr: dict[str, Any], namespace: str) -> list[dict[str, Any]]:
    """SCCs letting the provisioner pods use host paths on OpenShift."""
    sccs = [_scc(cr, CSI_NAME, PROVISIONER_SERVICE_ACCOUNT_CSI, namespace, privileged=True)]
    if is_legacy(cr):
        sccs.insert(0, _scc(cr, MULTI_PURPOSE_NAME, PROVISIONER_SERVICE_ACCOUNT, namespace, privileged=False))
    return sccs
