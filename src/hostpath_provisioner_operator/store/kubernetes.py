"""ObjectStore backed by the Kubernetes dynamic client."""

from __future__ import annotations

import logging
import time
from typing import Any

from kubernetes import client, config
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import (
    ConflictError as DynamicConflictError,
    NotFoundError as DynamicNotFoundError,
    ResourceNotFoundError,
    ResourceNotUniqueError,
    ServiceUnavailableError,
)

from .. import metrics
from ..utils.errors import (
    ConflictError,
    KindNotRegisteredError,
    NotFoundError,
    StoreNotReadyError,
)
from ..utils.rate_limit import Throttle
from .base import ObjectStore, ResourceKind, kind_of, label_selector_string

logger = logging.getLogger(__name__)


def get_api_client() -> client.ApiClient:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()
    return client.ApiClient()


class KubernetesObjectStore(ObjectStore):
    """Reads and writes cluster objects through a DynamicClient."""

    def __init__(
        self,
        dynamic_client: DynamicClient,
        throttle: Throttle | None = None,
        propagation_policy: str = "Background",
    ):
        self.client = dynamic_client
        self.throttle = throttle
        self.propagation_policy = propagation_policy

    @classmethod
    def from_config(cls, api_client: client.ApiClient, rate_per_second: float) -> KubernetesObjectStore:
        return cls(DynamicClient(api_client), throttle=Throttle(rate_per_second))

    def _resource(self, kind: ResourceKind) -> Any:
        try:
            return self.client.resources.get(api_version=kind.api_version, kind=kind.kind)
        except (ResourceNotFoundError, ResourceNotUniqueError) as e:
            raise KindNotRegisteredError(kind.api_version, kind.kind) from e
        except ServiceUnavailableError as e:
            raise StoreNotReadyError(f"API discovery unavailable for {kind}: {e}") from e

    def _call(self, kind: ResourceKind, operation: str, name: str | None, namespace: str | None, fn: Any) -> Any:
        if self.throttle is not None:
            self.throttle.wait()
        start_time = time.time()
        try:
            return fn()
        except DynamicNotFoundError as e:
            raise NotFoundError(kind.kind, name or "", namespace) from e
        except DynamicConflictError as e:
            raise ConflictError(f"{operation} {kind.kind} {name}: {e.summary()}") from e
        except ServiceUnavailableError as e:
            raise StoreNotReadyError(f"{operation} {kind.kind} {name}: {e.summary()}") from e
        finally:
            if operation != "get" and operation != "list":
                metrics.object_operations_total.labels(kind=kind.kind, operation=operation).inc()
            logger.debug(f"{operation} {kind} {name or ''} took {time.time() - start_time:.3f}s")

    def get(self, kind: ResourceKind, name: str, namespace: str | None = None) -> dict[str, Any]:
        resource = self._resource(kind)
        namespace = namespace if kind.namespaced else None
        result = self._call(kind, "get", name, namespace, lambda: resource.get(name=name, namespace=namespace))
        return result.to_dict()

    def list(
        self,
        kind: ResourceKind,
        namespace: str | None = None,
        label_selector: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        resource = self._resource(kind)
        namespace = namespace if kind.namespaced else None
        result = self._call(
            kind,
            "list",
            None,
            namespace,
            lambda: resource.get(namespace=namespace, label_selector=label_selector_string(label_selector)),
        )
        items = result.to_dict().get("items") or []
        # List items come back without apiVersion and kind
        for item in items:
            item.setdefault("apiVersion", kind.api_version)
            item.setdefault("kind", kind.kind)
        return items

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        kind = kind_of(obj)
        resource = self._resource(kind)
        meta = obj.get("metadata", {})
        result = self._call(
            kind,
            "create",
            meta.get("name"),
            meta.get("namespace"),
            lambda: self.client.create(resource, body=obj, namespace=meta.get("namespace")),
        )
        return result.to_dict()

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        kind = kind_of(obj)
        resource = self._resource(kind)
        meta = obj.get("metadata", {})
        result = self._call(
            kind,
            "update",
            meta.get("name"),
            meta.get("namespace"),
            lambda: self.client.replace(resource, body=obj, namespace=meta.get("namespace")),
        )
        return result.to_dict()

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        kind = kind_of(obj)
        resource = self._resource(kind)
        meta = obj.get("metadata", {})
        status_resource = resource.subresources.get("status")
        if status_resource is None:
            # CRDs without a status subresource take status through the main endpoint
            return self.update(obj)
        result = self._call(
            kind,
            "update_status",
            meta.get("name"),
            meta.get("namespace"),
            lambda: self.client.replace(status_resource, body=obj, namespace=meta.get("namespace")),
        )
        return result.to_dict()

    def delete(self, kind: ResourceKind, name: str, namespace: str | None = None) -> None:
        resource = self._resource(kind)
        namespace = namespace if kind.namespaced else None
        self._call(
            kind,
            "delete",
            name,
            namespace,
            lambda: self.client.delete(
                resource,
                name=name,
                namespace=namespace,
                propagation_policy=self.propagation_policy,
            ),
        )
