"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

import abc
import logging
from datetime import datetime, timezone
from typing import Any

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from ..constants import (
    EVENT_REASON_DEPLOY_STARTED,
    EVENT_REASON_PROVISIONER_HEALTHY,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_UPGRADE_STARTED,
    MESSAGE_DEPLOY_STARTED,
    MESSAGE_PROVISIONER_HEALTHY,
)

EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"

logger = logging.getLogger(__name__)


class EventRecorder(abc.ABC):
    """Records events about an object."""

    @abc.abstractmethod
    def event(self, obj: dict[str, Any], type_: str, reason: str, message: str) -> None:
        """Record an event.

        Args:
            obj: The object the event is about
            type_: Event type (Normal or Warning)
            reason: Event reason
            message: Event message
        """


class KubernetesEventRecorder(EventRecorder):
    """Posts core/v1 Events through the Kubernetes API."""

    def __init__(self, api: client.CoreV1Api, component: str = "operator-controller"):
        self.api = api
        self.component = component

    def event(self, obj: dict[str, Any], type_: str, reason: str, message: str) -> None:
        meta = obj.get("metadata", {})
        # Events about cluster scoped objects live in the default namespace
        namespace = meta.get("namespace") or "default"
        now = datetime.now(timezone.utc)
        body = client.CoreV1Event(
            metadata=client.V1ObjectMeta(generate_name=f"{meta.get('name', 'unknown')}."),
            involved_object=client.V1ObjectReference(
                api_version=obj.get("apiVersion"),
                kind=obj.get("kind"),
                name=meta.get("name"),
                namespace=meta.get("namespace"),
                uid=meta.get("uid"),
                resource_version=meta.get("resourceVersion"),
            ),
            reason=reason,
            message=message,
            type=type_,
            source=client.V1EventSource(component=self.component),
            first_timestamp=now,
            last_timestamp=now,
            count=1,
        )
        try:
            self.api.create_namespaced_event(namespace, body)
        except ApiException as e:
            # Events are informational, a failure to post one must not fail the reconcile
            logger.warning(f"Failed to record event {reason} for {meta.get('name')}: {e.reason}")


def emit_deploy_started(recorder: EventRecorder, obj: dict[str, Any]) -> None:
    """Emit deploy started event."""
    recorder.event(obj, EVENT_TYPE_NORMAL, EVENT_REASON_DEPLOY_STARTED, MESSAGE_DEPLOY_STARTED)


def emit_upgrade_started(recorder: EventRecorder, obj: dict[str, Any], target_version: str) -> None:
    """Emit upgrade started event."""
    recorder.event(
        obj,
        EVENT_TYPE_WARNING,
        EVENT_REASON_UPGRADE_STARTED,
        f"Started upgrade to version {target_version}",
    )


def emit_reconcile_failed(recorder: EventRecorder, obj: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    recorder.event(obj, EVENT_TYPE_WARNING, EVENT_REASON_RECONCILE_FAILED, message)


def emit_provisioner_healthy(recorder: EventRecorder, obj: dict[str, Any]) -> None:
    """Emit provisioner healthy event."""
    recorder.event(obj, EVENT_TYPE_NORMAL, EVENT_REASON_PROVISIONER_HEALTHY, MESSAGE_PROVISIONER_HEALTHY)
