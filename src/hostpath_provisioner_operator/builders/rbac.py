"""Builders for service accounts and RBAC objects."""

from __future__ import annotations

from typing import Any

from ..constants import (
    FEATURE_GATE_SNAPSHOTTING,
    PROVISIONER_SERVICE_ACCOUNT,
    PROVISIONER_SERVICE_ACCOUNT_CSI,
)
from .common import is_feature_gate_enabled, object_meta

RBAC_API_VERSION = "rbac.authorization.k8s.io/v1"

# Service accounts created in every mode
SERVICE_ACCOUNTS = (PROVISIONER_SERVICE_ACCOUNT, PROVISIONER_SERVICE_ACCOUNT_CSI)


def _rule(api_groups: list[str], resources: list[str], verbs: list[str]) -> dict[str, Any]:
    return {"apiGroups": api_groups, "resources": resources, "verbs": verbs}


def build_service_account(cr: dict[str, Any], name: str, namespace: str) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": object_meta(name, cr, namespace=namespace),
    }


def _provisioner_rules() -> list[dict[str, Any]]:
    return [
        _rule([""], ["persistentvolumes"], ["get", "list", "watch", "create", "delete"]),
        _rule([""], ["persistentvolumeclaims"], ["get", "list", "watch", "update"]),
        _rule(["storage.k8s.io"], ["storageclasses"], ["get", "list", "watch"]),
        _rule([""], ["events"], ["list", "watch", "create", "update", "patch"]),
        _rule([""], ["nodes"], ["get"]),
    ]


def _csi_rules(cr: dict[str, Any]) -> list[dict[str, Any]]:
    rules = _provisioner_rules() + [
        _rule(["storage.k8s.io"], ["csinodes"], ["get", "list", "watch"]),
        _rule(["storage.k8s.io"], ["volumeattachments"], ["get", "list", "watch"]),
        _rule(["storage.k8s.io"], ["csistoragecapacities"], ["get", "list", "watch", "create", "update", "patch", "delete"]),
        _rule([""], ["nodes"], ["get", "list", "watch"]),
    ]
    if is_feature_gate_enabled(cr, FEATURE_GATE_SNAPSHOTTING):
        rules.extend(
            [
                _rule(["snapshot.storage.k8s.io"], ["volumesnapshots"], ["get", "list"]),
                _rule(["snapshot.storage.k8s.io"], ["volumesnapshotcontents"], ["get", "list", "watch", "update", "patch"]),
                _rule(["snapshot.storage.k8s.io"], ["volumesnapshotcontents/status"], ["update", "patch"]),
                _rule(["snapshot.storage.k8s.io"], ["volumesnapshotclasses"], ["get", "list", "watch"]),
            ]
        )
    return rules


def build_cluster_roles(cr: dict[str, Any]) -> list[dict[str, Any]]:
    return [
        {
            "apiVersion": RBAC_API_VERSION,
            "kind": "ClusterRole",
            "metadata": object_meta(PROVISIONER_SERVICE_ACCOUNT, cr, owned=False),
            "rules": _provisioner_rules(),
        },
        {
            "apiVersion": RBAC_API_VERSION,
            "kind": "ClusterRole",
            "metadata": object_meta(PROVISIONER_SERVICE_ACCOUNT_CSI, cr, owned=False),
            "rules": _csi_rules(cr),
        },
    ]


def build_cluster_role_bindings(cr: dict[str, Any], namespace: str) -> list[dict[str, Any]]:
    return [
        {
            "apiVersion": RBAC_API_VERSION,
            "kind": "ClusterRoleBinding",
            "metadata": object_meta(name, cr, owned=False),
            "roleRef": {"apiGroup": "rbac.authorization.k8s.io", "kind": "ClusterRole", "name": name},
            "subjects": [{"kind": "ServiceAccount", "name": name, "namespace": namespace}],
        }
        for name in SERVICE_ACCOUNTS
    ]


def build_roles(cr: dict[str, Any], namespace: str) -> list[dict[str, Any]]:
    """Namespaced permissions of the CSI driver: leader election and capacity ownership."""
    return [
        {
            "apiVersion": RBAC_API_VERSION,
            "kind": "Role",
            "metadata": object_meta(PROVISIONER_SERVICE_ACCOUNT_CSI, cr, namespace=namespace),
            "rules": [
                _rule(["coordination.k8s.io"], ["leases"], ["get", "watch", "list", "delete", "update", "create"]),
                _rule(["storage.k8s.io"], ["csistoragecapacities"], ["get", "list", "watch", "create", "update", "patch", "delete"]),
                _rule([""], ["pods"], ["get"]),
                _rule(["apps"], ["daemonsets"], ["get"]),
            ],
        }
    ]


def build_role_bindings(cr: dict[str, Any], namespace: str) -> list[dict[str, Any]]:
    return [
        {
            "apiVersion": RBAC_API_VERSION,
            "kind": "RoleBinding",
            "metadata": object_meta(PROVISIONER_SERVICE_ACCOUNT_CSI, cr, namespace=namespace),
            "roleRef": {"apiGroup": "rbac.authorization.k8s.io", "kind": "Role", "name": PROVISIONER_SERVICE_ACCOUNT_CSI},
            "subjects": [{"kind": "ServiceAccount", "name": PROVISIONER_SERVICE_ACCOUNT_CSI, "namespace": namespace}],
        }
    ]
