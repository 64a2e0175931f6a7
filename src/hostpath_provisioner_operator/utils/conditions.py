"""Utilities for managing the HostPathProvisioner status conditions.

The CR reports its health through three independent conditions, Available,
Progressing and Degraded. The mark_* helpers set all three at once to express
one of the operator states (deploying, healthy, upgrading, failed).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import COND_AVAILABLE, COND_DEGRADED, COND_PROGRESSING

STATUS_TRUE = "True"
STATUS_FALSE = "False"
STATUS_UNKNOWN = "Unknown"


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def find_condition(conditions: list[dict[str, Any]], condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, or None."""
    for cond in conditions:
        if cond.get("type") == condition_type:
            return cond
    return None


def is_condition_true(conditions: list[dict[str, Any]], condition_type: str) -> bool:
    """Return True if the condition exists and its status is True."""
    cond = find_condition(conditions, condition_type)
    return cond is not None and cond.get("status") == STATUS_TRUE


def same_state(a: dict[str, Any] | None, b: dict[str, Any] | None) -> bool:
    """Compare two conditions on status, reason and message only."""
    if a is None or b is None:
        return a is b
    return (
        a.get("status") == b.get("status")
        and a.get("reason") == b.get("reason")
        and a.get("message") == b.get("message")
    )


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    now: str | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    lastHeartbeatTime is refreshed on every call, lastTransitionTime only when
    status, reason or message change.

    Args:
        conditions: List of existing conditions, modified in place
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        now: Timestamp to use, defaults to the current time

    Returns:
        Updated list of conditions
    """
    now = now or _now()
    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
        "lastHeartbeatTime": now,
    }

    existing = find_condition(conditions, condition_type)
    if existing is None:
        conditions.append(new_condition)
        return conditions

    if same_state(existing, new_condition):
        new_condition["lastTransitionTime"] = existing.get("lastTransitionTime", now)
    existing.clear()
    existing.update(new_condition)
    return conditions


def _set_all(
    conditions: list[dict[str, Any]],
    available: str,
    progressing: str,
    degraded: str,
    reason: str,
    message: str,
    primary: str,
) -> list[dict[str, Any]]:
    now = _now()
    for cond_type, status in (
        (COND_AVAILABLE, available),
        (COND_PROGRESSING, progressing),
        (COND_DEGRADED, degraded),
    ):
        update_condition(
            conditions,
            cond_type,
            status,
            reason,
            message if cond_type == primary else "",
            now=now,
        )
    return conditions


def mark_deploying(conditions: list[dict[str, Any]], reason: str, message: str) -> list[dict[str, Any]]:
    """Fresh install: not available yet, progressing, not degraded."""
    return _set_all(conditions, STATUS_FALSE, STATUS_TRUE, STATUS_FALSE, reason, message, COND_PROGRESSING)


def mark_healthy(conditions: list[dict[str, Any]], reason: str, message: str) -> list[dict[str, Any]]:
    """All required workloads are ready."""
    return _set_all(conditions, STATUS_TRUE, STATUS_FALSE, STATUS_FALSE, reason, message, COND_AVAILABLE)


def mark_upgrading(conditions: list[dict[str, Any]], reason: str, message: str) -> list[dict[str, Any]]:
    """Upgrade in progress: still available, progressing and degraded until it completes."""
    return _set_all(conditions, STATUS_TRUE, STATUS_TRUE, STATUS_TRUE, reason, message, COND_PROGRESSING)


def mark_failed(conditions: list[dict[str, Any]], reason: str, message: str) -> list[dict[str, Any]]:
    """Deployed but broken, no progress expected on its own."""
    return _set_all(conditions, STATUS_FALSE, STATUS_FALSE, STATUS_TRUE, reason, message, COND_DEGRADED)


def mark_failed_healing(conditions: list[dict[str, Any]], reason: str, message: str) -> list[dict[str, Any]]:
    """A reconcile step failed, the operator keeps retrying."""
    return _set_all(conditions, STATUS_FALSE, STATUS_TRUE, STATUS_TRUE, reason, message, COND_DEGRADED)


def ignore_heartbeat_timestamps(
    before: list[dict[str, Any]],
    after: list[dict[str, Any]],
) -> None:
    """Copy heartbeats from after into before where nothing else changed.

    Used right before diffing so that a heartbeat-only change does not cause
    a status write.
    """
    for cond in before:
        current = find_condition(after, cond.get("type", ""))
        if current is not None and same_state(cond, current):
            cond["lastHeartbeatTime"] = current.get("lastHeartbeatTime")
