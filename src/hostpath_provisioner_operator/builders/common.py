"""Helpers shared by the manifest builders."""

from __future__ import annotations

import hashlib
from typing import Any

from ..constants import LABEL_APP, LABEL_PART_OF, MULTI_PURPOSE_NAME

MAX_NAME_LENGTH = 63


def is_legacy(cr: dict[str, Any]) -> bool:
    """A CR with a pathConfig runs the legacy provisioner next to the CSI driver."""
    return cr.get("spec", {}).get("pathConfig") is not None


def is_feature_gate_enabled(cr: dict[str, Any], feature: str) -> bool:
    """Feature gates are enabled by listing their name, unknown names are ignored."""
    return feature in (cr.get("spec", {}).get("featureGates") or [])


def image_pull_policy(cr: dict[str, Any]) -> str:
    return cr.get("spec", {}).get("imagePullPolicy") or "IfNotPresent"


def common_labels(extra: dict[str, str] | None = None) -> dict[str, str]:
    labels = {
        LABEL_APP: MULTI_PURPOSE_NAME,
        LABEL_PART_OF: "hostpath-provisioner",
    }
    if extra:
        labels.update(extra)
    return labels


def owner_reference(cr: dict[str, Any]) -> dict[str, Any]:
    """Controller owner reference pointing at the CR."""
    meta = cr.get("metadata", {})
    return {
        "apiVersion": cr["apiVersion"],
        "kind": cr["kind"],
        "name": meta["name"],
        "uid": meta.get("uid"),
        "controller": True,
        "blockOwnerDeletion": True,
    }


def object_meta(
    name: str,
    cr: dict[str, Any],
    namespace: str | None = None,
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
    owned: bool = True,
) -> dict[str, Any]:
    """Build metadata for an owned object.

    Cluster scoped objects are not garbage collected through the CR and are
    found by label instead, so they get no owner reference.
    """
    meta: dict[str, Any] = {"name": name, "labels": common_labels(labels)}
    if namespace:
        meta["namespace"] = namespace
    if annotations:
        meta["annotations"] = dict(annotations)
    if owned:
        meta["ownerReferences"] = [owner_reference(cr)]
    return meta


def workload_placement(cr: dict[str, Any]) -> dict[str, Any]:
    """Pod spec fields derived from spec.workload."""
    workload = cr.get("spec", {}).get("workload") or {}
    placement: dict[str, Any] = {}
    if workload.get("nodeSelector"):
        placement["nodeSelector"] = dict(workload["nodeSelector"])
    if workload.get("affinity"):
        placement["affinity"] = workload["affinity"]
    if workload.get("tolerations"):
        placement["tolerations"] = list(workload["tolerations"])
    return placement


def bounded_name(*parts: str) -> str:
    """Join parts with '-' and keep the result a valid object name.

    Names longer than 63 characters are truncated and suffixed with a hash of
    the full name so they stay unique.
    """
    name = "-".join(parts)
    if len(name) <= MAX_NAME_LENGTH:
        return name
    digest = hashlib.sha256(name.encode()).hexdigest()[:10]
    return f"{name[:MAX_NAME_LENGTH - len(digest) - 1].rstrip('-')}-{digest}"
