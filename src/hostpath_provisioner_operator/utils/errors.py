"""Exception types raised by the operator."""

from __future__ import annotations


class OperatorError(Exception):
    """Base class for all operator errors."""


class StoreError(OperatorError):
    """An object store request failed."""


class NotFoundError(StoreError):
    """The requested object does not exist."""

    def __init__(self, kind: str, name: str, namespace: str | None = None):
        self.kind = kind
        self.name = name
        self.namespace = namespace
        location = f"{namespace}/{name}" if namespace else name
        super().__init__(f"{kind} {location} not found")


class ConflictError(StoreError):
    """A write was rejected because the object changed since it was read."""


class KindNotRegisteredError(StoreError):
    """The cluster API surface has no mapping for the requested kind."""

    def __init__(self, api_version: str, kind: str):
        self.api_version = api_version
        self.kind = kind
        super().__init__(f"no matches for kind {kind!r} in version {api_version!r}")


class StoreNotReadyError(StoreError):
    """The object store has not finished its initial sync yet."""


class SingletonViolationError(OperatorError):
    """More than one HostPathProvisioner exists in the cluster."""

    def __init__(self, count: int):
        self.count = count
        super().__init__(f"there should be a single hostpath provisioner, {count} items found")


class DowngradeError(OperatorError):
    """The running operator is older than the version already deployed."""

    def __init__(self, observed: str, target: str):
        self.observed = observed
        self.target = target
        super().__init__(f"operator downgraded from {observed} to {target}, will not reconcile")
