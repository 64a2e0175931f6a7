"""Object store interface used by the reconcile loop."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any

from ..constants import API_GROUP_VERSION, KIND_HOSTPATH_PROVISIONER


@dataclass(frozen=True)
class ResourceKind:
    """A kind of cluster object, addressed by apiVersion and kind."""

    api_version: str
    kind: str
    namespaced: bool = True

    def __str__(self) -> str:
        return f"{self.kind}.{self.api_version}"


HOSTPATH_PROVISIONER = ResourceKind(API_GROUP_VERSION, KIND_HOSTPATH_PROVISIONER, namespaced=False)
DAEMON_SET = ResourceKind("apps/v1", "DaemonSet")
DEPLOYMENT = ResourceKind("apps/v1", "Deployment")
JOB = ResourceKind("batch/v1", "Job")
SERVICE_ACCOUNT = ResourceKind("v1", "ServiceAccount")
SERVICE = ResourceKind("v1", "Service")
PERSISTENT_VOLUME_CLAIM = ResourceKind("v1", "PersistentVolumeClaim")
NODE = ResourceKind("v1", "Node", namespaced=False)
CLUSTER_ROLE = ResourceKind("rbac.authorization.k8s.io/v1", "ClusterRole", namespaced=False)
CLUSTER_ROLE_BINDING = ResourceKind("rbac.authorization.k8s.io/v1", "ClusterRoleBinding", namespaced=False)
ROLE = ResourceKind("rbac.authorization.k8s.io/v1", "Role")
ROLE_BINDING = ResourceKind("rbac.authorization.k8s.io/v1", "RoleBinding")
CSI_DRIVER = ResourceKind("storage.k8s.io/v1", "CSIDriver", namespaced=False)
SECURITY_CONTEXT_CONSTRAINTS = ResourceKind(
    "security.openshift.io/v1", "SecurityContextConstraints", namespaced=False
)
API_SERVER = ResourceKind("config.openshift.io/v1", "APIServer", namespaced=False)
PROMETHEUS_RULE = ResourceKind("monitoring.coreos.com/v1", "PrometheusRule")
SERVICE_MONITOR = ResourceKind("monitoring.coreos.com/v1", "ServiceMonitor")


def kind_of(obj: dict[str, Any]) -> ResourceKind:
    """Return the ResourceKind of a manifest.

    The namespaced flag is derived from the presence of metadata.namespace.
    """
    return ResourceKind(
        obj["apiVersion"],
        obj["kind"],
        namespaced=bool(obj.get("metadata", {}).get("namespace")),
    )


class ObjectStore(abc.ABC):
    """Typed access to the cluster object graph.

    Reads may be served from a cache and be stale. Writes go to the API server
    and may fail with ConflictError when the object changed since it was read.
    Every method raises KindNotRegisteredError when the cluster does not know
    the kind.
    """

    @abc.abstractmethod
    def get(self, kind: ResourceKind, name: str, namespace: str | None = None) -> dict[str, Any]:
        """Fetch one object.

        Raises:
            NotFoundError: If the object does not exist
        """

    @abc.abstractmethod
    def list(
        self,
        kind: ResourceKind,
        namespace: str | None = None,
        label_selector: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """List objects of a kind, optionally filtered by namespace and labels."""

    @abc.abstractmethod
    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Create an object and return it as stored."""

    @abc.abstractmethod
    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace an object (excluding status) and return it as stored.

        Raises:
            ConflictError: If metadata.resourceVersion is stale
        """

    @abc.abstractmethod
    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace the status of an object and return it as stored.

        Raises:
            ConflictError: If metadata.resourceVersion is stale
        """

    @abc.abstractmethod
    def delete(self, kind: ResourceKind, name: str, namespace: str | None = None) -> None:
        """Delete an object.

        Raises:
            NotFoundError: If the object does not exist
        """


def label_selector_string(label_selector: dict[str, str] | None) -> str | None:
    """Render a label selector dict as the API server's query syntax."""
    if not label_selector:
        return None
    return ",".join(f"{key}={value}" for key, value in sorted(label_selector.items()))


def matches_labels(obj: dict[str, Any], label_selector: dict[str, str] | None) -> bool:
    """Return True if the object carries every label in the selector."""
    if not label_selector:
        return True
    labels = obj.get("metadata", {}).get("labels") or {}
    return all(labels.get(key) == value for key, value in label_selector.items())
