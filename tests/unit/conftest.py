"""Shared fixtures for the unit tests."""

from __future__ import annotations

from typing import Any

import pytest

from hostpath_provisioner_operator.config import OperatorConfig
from hostpath_provisioner_operator.constants import API_GROUP_VERSION, KIND_HOSTPATH_PROVISIONER
from hostpath_provisioner_operator.metrics import ReadinessSink
from hostpath_provisioner_operator.store.memory import InMemoryObjectStore
from hostpath_provisioner_operator.utils.events import EventRecorder

NAMESPACE = "hostpath-provisioner"
VERSION = "1.2.0"


class RecordingEventRecorder(EventRecorder):
    def __init__(self) -> None:
        self.events: list[tuple[str, str, str]] = []

    def event(self, obj: dict[str, Any], type_: str, reason: str, message: str) -> None:
        self.events.append((type_, reason, message))

    def reasons(self) -> list[str]:
        return [reason for _, reason, _ in self.events]


class RecordingReadinessSink(ReadinessSink):
    def __init__(self) -> None:
        self.values: list[int] = []

    def set_ready(self, value: int) -> None:
        self.values.append(value)


def make_cr(name: str = "hostpath-provisioner", **spec: Any) -> dict[str, Any]:
    """A HostPathProvisioner in driver only mode unless spec says otherwise."""
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_HOSTPATH_PROVISIONER,
        "metadata": {"name": name, "uid": f"uid-{name}"},
        "spec": spec or {"storagePools": [{"name": "local", "path": "/var/hpp"}]},
    }


def make_node(name: str, labels: dict[str, str] | None = None) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Node",
        "metadata": {"name": name, "labels": {"kubernetes.io/hostname": name, **(labels or {})}},
    }


@pytest.fixture
def config() -> OperatorConfig:
    return OperatorConfig(namespace=NAMESPACE, operator_version=VERSION)


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def recorder() -> RecordingEventRecorder:
    return RecordingEventRecorder()


@pytest.fixture
def readiness() -> RecordingReadinessSink:
    return RecordingReadinessSink()
