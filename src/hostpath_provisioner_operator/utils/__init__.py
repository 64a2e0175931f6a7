"""Utility functions for the Hostpath Provisioner Operator."""

from .conditions import (
    find_condition,
    ignore_heartbeat_timestamps,
    is_condition_true,
    update_condition,
)
from .context import get_correlation_id, with_correlation_id
from .errors import (
    ConflictError,
    DowngradeError,
    KindNotRegisteredError,
    NotFoundError,
    OperatorError,
    SingletonViolationError,
    StoreError,
    StoreNotReadyError,
)

__all__ = [
    "ConflictError",
    "DowngradeError",
    "KindNotRegisteredError",
    "NotFoundError",
    "OperatorError",
    "SingletonViolationError",
    "StoreError",
    "StoreNotReadyError",
    "find_condition",
    "get_correlation_id",
    "ignore_heartbeat_timestamps",
    "is_condition_true",
    "update_condition",
    "with_correlation_id",
]
