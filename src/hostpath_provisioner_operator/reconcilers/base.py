"""Create-or-update primitive shared by every owned resource kind."""

from __future__ import annotations

import copy
import logging
from typing import Any

from ..config import OperatorConfig
from ..logging import log_reconcile_event
from ..store.base import ObjectStore, ResourceKind, kind_of
from ..utils.errors import NotFoundError

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"


def merge_desired(live: Any, desired: Any) -> tuple[Any, bool]:
    """Merge the fields the operator owns into a live object.

    Dictionaries are merged key by key so fields set by other actors (server
    defaults, other controllers) survive. Lists of equal length are merged
    element-wise for the same reason; lists of different length and scalars
    are replaced.

    Returns:
        The merged value and whether it differs from the live value
    """
    if isinstance(live, dict) and isinstance(desired, dict):
        merged = dict(live)
        changed = False
        for key, value in desired.items():
            if key in live:
                merged[key], key_changed = merge_desired(live[key], value)
            else:
                merged[key], key_changed = copy.deepcopy(value), True
            changed = changed or key_changed
        return merged, changed

    if isinstance(live, list) and isinstance(desired, list) and len(live) == len(desired):
        merged_list = []
        changed = False
        for live_item, desired_item in zip(live, desired):
            item, item_changed = merge_desired(live_item, desired_item)
            merged_list.append(item)
            changed = changed or item_changed
        return merged_list, changed

    if live == desired:
        return live, False
    return copy.deepcopy(desired), True


class BaseReconciler:
    """Base class with the object store access and logging shared by all reconcilers."""

    def __init__(self, store: ObjectStore, config: OperatorConfig):
        self.store = store
        self.config = config
        self.logger = logging.getLogger(self.__class__.__module__)

    def log_info(self, cr: dict[str, Any], message: str, event: str = "info", reason: str = "Info", **kwargs: Any) -> None:
        log_reconcile_event(
            self.logger, cr.get("metadata", {}).get("name", "unknown"), event, reason, message, **kwargs
        )

    def log_error(
        self,
        cr: dict[str, Any],
        message: str,
        error: Exception | None = None,
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        if error is not None:
            kwargs["error"] = str(error)
            kwargs["error_type"] = type(error).__name__
        log_reconcile_event(
            self.logger,
            cr.get("metadata", {}).get("name", "unknown"),
            "error",
            reason,
            message,
            level=logging.ERROR,
            **kwargs,
        )

    def apply(self, cr: dict[str, Any], desired: dict[str, Any], create_only: bool = False) -> tuple[dict[str, Any], str]:
        """Fetch-or-create an object and converge it toward the desired manifest.

        Args:
            cr: The HostPathProvisioner, used for logging
            desired: Desired manifest
            create_only: Never update an existing object (for immutable specs)

        Returns:
            The object as stored and one of "created", "updated", "unchanged"
        """
        kind = kind_of(desired)
        meta = desired["metadata"]
        try:
            live = self.store.get(kind, meta["name"], meta.get("namespace"))
        except NotFoundError:
            created = self.store.create(desired)
            self.log_info(cr, f"Created {kind.kind} {meta['name']}", event="create", reason="ObjectCreated")
            return created, CREATED

        if create_only:
            return live, UNCHANGED

        merged = dict(live)
        changed = False
        for key, value in desired.items():
            if key in ("apiVersion", "kind", "status"):
                continue
            if key in live:
                merged[key], key_changed = merge_desired(live[key], value)
            else:
                merged[key], key_changed = copy.deepcopy(value), True
            changed = changed or key_changed

        if not changed:
            return live, UNCHANGED

        updated = self.store.update(merged)
        self.log_info(cr, f"Updated {kind.kind} {meta['name']}", event="update", reason="ObjectUpdated")
        return updated, UPDATED

    def delete_if_exists(
        self,
        cr: dict[str, Any],
        kind: ResourceKind,
        name: str,
        namespace: str | None = None,
    ) -> bool:
        """Delete an object, treating a missing object as success.

        Returns:
            True if an object was deleted
        """
        try:
            self.store.delete(kind, name, namespace)
        except NotFoundError:
            return False
        self.log_info(cr, f"Deleted {kind.kind} {name}", event="delete", reason="ObjectDeleted")
        return True
