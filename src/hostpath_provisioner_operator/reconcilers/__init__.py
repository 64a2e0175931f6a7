"""Reconcilers converging the cluster toward the HostPathProvisioner spec."""

from .base import BaseReconciler
from .deletion import DeletionProtocol
from .resources import ResourceReconciler
from .status import StatusReconciler, compute_change_set, daemonset_ready
from .storagepools import StoragePoolReconciler

__all__ = [
    "BaseReconciler",
    "DeletionProtocol",
    "ResourceReconciler",
    "StatusReconciler",
    "StoragePoolReconciler",
    "compute_change_set",
    "daemonset_ready",
]
