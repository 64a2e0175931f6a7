"""In-memory ObjectStore used for tests and dry runs."""

from __future__ import annotations

import copy
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from ..utils.errors import (
    ConflictError,
    KindNotRegisteredError,
    NotFoundError,
    StoreNotReadyError,
)
from .base import ObjectStore, ResourceKind, matches_labels


@dataclass(frozen=True)
class Mutation:
    """One write recorded by the in-memory store."""

    operation: str
    kind: str
    name: str
    namespace: str | None = None


def _key(api_version: str, kind: str, namespace: str | None, name: str) -> tuple[str, str, str, str]:
    return (api_version, kind, namespace or "", name)


class InMemoryObjectStore(ObjectStore):
    """Dictionary backed object store with API-server like semantics.

    Resource versions are checked on update, status is only written through
    update_status, and objects carrying finalizers are soft deleted by setting
    metadata.deletionTimestamp.
    """

    def __init__(
        self,
        objects: Iterable[dict[str, Any]] = (),
        unregistered_kinds: Iterable[ResourceKind] = (),
    ):
        self._objects: dict[tuple[str, str, str, str], dict[str, Any]] = {}
        self._lock = threading.RLock()
        self._version = 0
        self.unregistered = {(k.api_version, k.kind) for k in unregistered_kinds}
        self.ready = True
        self.mutations: list[Mutation] = []
        for obj in objects:
            self.seed(obj)

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _check_kind(self, api_version: str, kind: str) -> None:
        if (api_version, kind) in self.unregistered:
            raise KindNotRegisteredError(api_version, kind)

    def _record(self, operation: str, obj: dict[str, Any]) -> None:
        meta = obj.get("metadata", {})
        self.mutations.append(Mutation(operation, obj["kind"], meta["name"], meta.get("namespace")))

    def seed(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Insert an object without recording a mutation."""
        with self._lock:
            stored = copy.deepcopy(obj)
            meta = stored.setdefault("metadata", {})
            meta.setdefault("uid", str(uuid.uuid4()))
            meta["resourceVersion"] = self._next_version()
            self._objects[_key(stored["apiVersion"], stored["kind"], meta.get("namespace"), meta["name"])] = stored
            return copy.deepcopy(stored)

    def set_status(
        self, kind: ResourceKind, name: str, status: dict[str, Any], namespace: str | None = None
    ) -> None:
        """Overwrite an object's status the way its own controller would, without recording a mutation."""
        with self._lock:
            namespace = namespace if kind.namespaced else None
            obj = self._objects.get(_key(kind.api_version, kind.kind, namespace, name))
            if obj is None:
                raise NotFoundError(kind.kind, name, namespace)
            obj["status"] = copy.deepcopy(status)
            obj["metadata"]["resourceVersion"] = self._next_version()

    def mutations_of(self, operation: str | None = None, kind: str | None = None) -> list[Mutation]:
        """Return recorded mutations, optionally filtered."""
        return [
            m
            for m in self.mutations
            if (operation is None or m.operation == operation) and (kind is None or m.kind == kind)
        ]

    def get(self, kind: ResourceKind, name: str, namespace: str | None = None) -> dict[str, Any]:
        with self._lock:
            self._check_kind(kind.api_version, kind.kind)
            namespace = namespace if kind.namespaced else None
            obj = self._objects.get(_key(kind.api_version, kind.kind, namespace, name))
            if obj is None:
                raise NotFoundError(kind.kind, name, namespace)
            return copy.deepcopy(obj)

    def list(
        self,
        kind: ResourceKind,
        namespace: str | None = None,
        label_selector: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            self._check_kind(kind.api_version, kind.kind)
            if not self.ready:
                raise StoreNotReadyError(f"cache for {kind} has not synced")
            result = []
            for (api_version, obj_kind, obj_namespace, _), obj in sorted(self._objects.items()):
                if api_version != kind.api_version or obj_kind != kind.kind:
                    continue
                if namespace and kind.namespaced and obj_namespace != namespace:
                    continue
                if matches_labels(obj, label_selector):
                    result.append(copy.deepcopy(obj))
            return result

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            self._check_kind(obj["apiVersion"], obj["kind"])
            meta = obj.get("metadata", {})
            key = _key(obj["apiVersion"], obj["kind"], meta.get("namespace"), meta["name"])
            if key in self._objects:
                raise ConflictError(f"{obj['kind']} {meta['name']} already exists")
            self._record("create", obj)
            return self.seed(obj)

    def _replace(self, obj: dict[str, Any], operation: str) -> dict[str, Any]:
        with self._lock:
            self._check_kind(obj["apiVersion"], obj["kind"])
            meta = obj.get("metadata", {})
            key = _key(obj["apiVersion"], obj["kind"], meta.get("namespace"), meta["name"])
            current = self._objects.get(key)
            if current is None:
                raise NotFoundError(obj["kind"], meta["name"], meta.get("namespace"))
            sent_version = meta.get("resourceVersion")
            if sent_version and sent_version != current["metadata"]["resourceVersion"]:
                raise ConflictError(
                    f"Operation cannot be fulfilled on {obj['kind']} {meta['name']}: "
                    "the object has been modified; please apply your changes to the latest version"
                )
            stored = copy.deepcopy(obj)
            if operation == "update_status":
                updated = copy.deepcopy(current)
                updated["status"] = stored.get("status", {})
            else:
                updated = stored
                updated.pop("status", None)
                if "status" in current:
                    updated["status"] = copy.deepcopy(current["status"])
                # deletionTimestamp and uid are owned by the server
                updated["metadata"]["uid"] = current["metadata"].get("uid")
                if current["metadata"].get("deletionTimestamp"):
                    updated["metadata"]["deletionTimestamp"] = current["metadata"]["deletionTimestamp"]
            updated["metadata"]["resourceVersion"] = self._next_version()
            self._record(operation, updated)
            if updated["metadata"].get("deletionTimestamp") and not updated["metadata"].get("finalizers"):
                del self._objects[key]
            else:
                self._objects[key] = updated
            return copy.deepcopy(updated)

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        return self._replace(obj, "update")

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        return self._replace(obj, "update_status")

    def delete(self, kind: ResourceKind, name: str, namespace: str | None = None) -> None:
        with self._lock:
            self._check_kind(kind.api_version, kind.kind)
            namespace = namespace if kind.namespaced else None
            key = _key(kind.api_version, kind.kind, namespace, name)
            obj = self._objects.get(key)
            if obj is None:
                raise NotFoundError(kind.kind, name, namespace)
            self._record("delete", obj)
            if obj["metadata"].get("finalizers"):
                obj["metadata"].setdefault(
                    "deletionTimestamp", datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
                )
                obj["metadata"]["resourceVersion"] = self._next_version()
            else:
                del self._objects[key]
