"""Structured logging configuration for the Hostpath Provisioner Operator."""

import json
import logging
import sys
from typing import Any

from .constants import KIND_HOSTPATH_PROVISIONER
from .utils.context import get_context_dict

CONTROLLER_NAME = "hostpath-provisioner-operator"


def setup_structured_logging(level: int = logging.INFO) -> None:
    """Configure structured JSON logging."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_log_record(
    name: str,
    event: str,
    reason: str,
    message: str,
    **kwargs: Any,
) -> dict[str, Any]:
    """Build the dictionary written by log_reconcile_event."""
    log_data = {
        "controller": CONTROLLER_NAME,
        "resource": KIND_HOSTPATH_PROVISIONER,
        "name": name,
        "event": event,
        "reason": reason,
        "message": message,
    }
    log_data.update(get_context_dict())
    log_data.update(kwargs)
    return log_data


def log_reconcile_event(
    logger: logging.Logger,
    name: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log a structured event about the reconciliation of a CR."""
    log_data = build_log_record(name, event, reason, message, **kwargs)
    logger.log(level, json.dumps(log_data, default=str))
