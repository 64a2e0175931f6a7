"""Tests for the watch wiring of the operator."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from conftest import make_cr

from hostpath_provisioner_operator.capabilities import Capability, DetectedCapabilities
from hostpath_provisioner_operator.main import Operator, owner_name
from hostpath_provisioner_operator.store.memory import InMemoryObjectStore
from hostpath_provisioner_operator.store.base import HOSTPATH_PROVISIONER

LABELS = {"k8s-app": "hostpath-provisioner"}


def _owned_body(kind: str = "HostPathProvisioner", controller: bool = True) -> dict:
    return {
        "metadata": {
            "name": "hostpath-provisioner-csi",
            "ownerReferences": [{"kind": kind, "name": "hostpath-provisioner", "controller": controller}],
        }
    }


@pytest.fixture
def operator(store, config, recorder, readiness) -> Operator:
    return Operator(config, store, recorder, readiness)


class TestOwnerName:
    """Test cases for owner_name."""

    def test_controller_owner(self):
        assert owner_name(_owned_body()) == "hostpath-provisioner"

    def test_other_owner(self):
        assert owner_name(_owned_body(kind="ReplicaSet")) is None
        assert owner_name(_owned_body(controller=False)) is None
        assert owner_name({"metadata": {}}) is None


class TestEnqueue:
    """Test cases for the event handlers feeding the queue."""

    def test_enqueue_cr(self, operator):
        operator.enqueue_cr(body={"metadata": {"name": "hostpath-provisioner"}})
        assert operator.queue.get(timeout=0) == "hostpath-provisioner"

    def test_enqueue_owner(self, operator):
        operator.enqueue_owner(body=_owned_body())
        operator.enqueue_owner(body=_owned_body(kind="ReplicaSet"))
        assert len(operator.queue) == 1

    def test_enqueue_singleton(self, store, operator):
        store.seed(make_cr())

        operator.enqueue_singleton(body={"metadata": {"name": "x", "labels": LABELS}})

        assert operator.queue.get(timeout=0) == "hostpath-provisioner"

    def test_enqueue_singleton_ignores_unlabeled(self, store, operator):
        store.seed(make_cr())
        operator.enqueue_singleton(body={"metadata": {"name": "x", "labels": {}}})
        assert len(operator.queue) == 0

    def test_enqueue_singleton_needs_exactly_one_cr(self, store, operator):
        store.seed(make_cr("first"))
        store.seed(make_cr("second"))
        operator.enqueue_singleton(body={"metadata": {"name": "x", "labels": LABELS}})
        assert len(operator.queue) == 0

    def test_enqueue_singleton_store_error(self, config, recorder, readiness):
        store = InMemoryObjectStore(unregistered_kinds=[HOSTPATH_PROVISIONER])
        operator = Operator(config, store, recorder, readiness)
        operator.enqueue_singleton(body={"metadata": {"name": "x", "labels": LABELS}})
        assert len(operator.queue) == 0

    @patch("hostpath_provisioner_operator.main.apply_api_server_tls_profile")
    def test_handle_api_server(self, mock_apply, operator):
        operator.handle_api_server(body={"spec": {"tlsSecurityProfile": {"type": "Old"}}})
        mock_apply.assert_called_once_with({"spec": {"tlsSecurityProfile": {"type": "Old"}}})


class TestBuildRegistry:
    """Test cases for the capability gated watch registration."""

    def _handler_ids(self, operator, capabilities) -> list[str]:
        with patch("hostpath_provisioner_operator.main.kopf.on.event") as mock_event:
            operator.build_registry(capabilities)
        return [c.kwargs["id"] for c in mock_event.call_args_list]

    def test_without_optional_kinds(self, operator):
        ids = self._handler_ids(operator, DetectedCapabilities())

        assert "cr" in ids
        assert "owned-daemonsets" in ids
        assert "labeled-csidrivers" in ids
        assert "labeled-scc" not in ids
        assert "apiserver" not in ids
        assert "labeled-prometheusrules" not in ids

    def test_with_optional_kinds(self, operator):
        ids = self._handler_ids(operator, DetectedCapabilities(Capability.USED, Capability.ASSUME_USED))

        assert "labeled-scc" in ids
        assert "apiserver" in ids
        assert "labeled-prometheusrules" in ids
        assert "labeled-servicemonitors" in ids

    def test_handler_ids_are_unique(self, operator):
        ids = self._handler_ids(operator, DetectedCapabilities(Capability.USED, Capability.USED))
        assert len(ids) == len(set(ids))


class TestStart:
    """Test cases for Operator.start."""

    @patch("hostpath_provisioner_operator.main.health.start_metrics_server")
    def test_start_once(self, mock_server, operator):
        with patch.object(operator.worker, "start") as mock_start:
            operator.start()
        mock_start.assert_called_once()
        mock_server.assert_called_once()
        assert mock_server.call_args[0][0] == operator.config.metrics_port
