"""Tests for the create-or-update primitive."""

from __future__ import annotations

from conftest import NAMESPACE, make_cr

from hostpath_provisioner_operator.reconcilers.base import (
    CREATED,
    UNCHANGED,
    UPDATED,
    BaseReconciler,
    merge_desired,
)
from hostpath_provisioner_operator.store.base import SERVICE_ACCOUNT


def _service_account(**extra) -> dict:
    obj = {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": {"name": "hostpath-provisioner-admin", "namespace": NAMESPACE, "labels": {"a": "b"}},
    }
    obj.update(extra)
    return obj


class TestMergeDesired:
    """Test cases for merge_desired."""

    def test_equal_values_unchanged(self):
        assert merge_desired({"a": 1}, {"a": 1}) == ({"a": 1}, False)

    def test_foreign_keys_survive(self):
        merged, changed = merge_desired({"a": 1, "defaulted": True}, {"a": 1})
        assert merged == {"a": 1, "defaulted": True}
        assert not changed

    def test_changed_scalar(self):
        merged, changed = merge_desired({"a": 1}, {"a": 2})
        assert merged == {"a": 2}
        assert changed

    def test_missing_key_added(self):
        merged, changed = merge_desired({}, {"a": {"b": 1}})
        assert merged == {"a": {"b": 1}}
        assert changed

    def test_lists_of_equal_length_merge_elementwise(self):
        live = [{"name": "c", "image": "x", "resources": {}}]
        merged, changed = merge_desired(live, [{"name": "c", "image": "x"}])
        assert merged == live
        assert not changed

    def test_lists_of_different_length_replace(self):
        merged, changed = merge_desired([1, 2], [1])
        assert merged == [1]
        assert changed

    def test_live_is_not_mutated(self):
        live = {"a": {"b": 1}}
        merge_desired(live, {"a": {"b": 2}})
        assert live == {"a": {"b": 1}}


class TestApply:
    """Test cases for BaseReconciler.apply."""

    def test_creates_missing(self, store, config):
        reconciler = BaseReconciler(store, config)

        obj, action = reconciler.apply(make_cr(), _service_account())

        assert action == CREATED
        assert obj["metadata"]["name"] == "hostpath-provisioner-admin"
        assert [m.operation for m in store.mutations] == ["create"]

    def test_unchanged_is_not_written(self, store, config):
        reconciler = BaseReconciler(store, config)
        reconciler.apply(make_cr(), _service_account())

        _, action = reconciler.apply(make_cr(), _service_account())

        assert action == UNCHANGED
        assert len(store.mutations) == 1

    def test_drift_is_corrected(self, store, config):
        store.seed(_service_account(automountServiceAccountToken=True))
        reconciler = BaseReconciler(store, config)

        obj, action = reconciler.apply(make_cr(), _service_account(automountServiceAccountToken=False))

        assert action == UPDATED
        assert obj["automountServiceAccountToken"] is False

    def test_foreign_fields_kept(self, store, config):
        store.seed(_service_account(secrets=[{"name": "token"}]))
        reconciler = BaseReconciler(store, config)

        obj, action = reconciler.apply(make_cr(), _service_account())

        assert action == UNCHANGED
        assert obj["secrets"] == [{"name": "token"}]

    def test_create_only_never_updates(self, store, config):
        store.seed(_service_account(automountServiceAccountToken=True))
        reconciler = BaseReconciler(store, config)

        _, action = reconciler.apply(make_cr(), _service_account(automountServiceAccountToken=False), create_only=True)

        assert action == UNCHANGED
        assert store.mutations == []


class TestDeleteIfExists:
    """Test cases for BaseReconciler.delete_if_exists."""

    def test_deletes_existing(self, store, config):
        store.seed(_service_account())
        assert BaseReconciler(store, config).delete_if_exists(
            make_cr(), SERVICE_ACCOUNT, "hostpath-provisioner-admin", NAMESPACE
        )

    def test_missing_is_success(self, store, config):
        assert not BaseReconciler(store, config).delete_if_exists(make_cr(), SERVICE_ACCOUNT, "missing", NAMESPACE)
        assert store.mutations == []
