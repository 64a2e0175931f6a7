"""Detection of the optional cluster APIs the operator can watch.

SecurityContextConstraints (with the APIServer TLS profile) only exist on
OpenShift, PrometheusRule and ServiceMonitor only where the Prometheus
operator is installed. Detection runs once at startup and produces a
DetectedCapabilities value consumed by the watch setup.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from .store.base import PROMETHEUS_RULE, SECURITY_CONTEXT_CONSTRAINTS, ObjectStore, ResourceKind
from .utils.errors import KindNotRegisteredError, StoreNotReadyError

logger = logging.getLogger(__name__)


class Capability(enum.Enum):
    """Detection outcome for one optional API."""

    USED = "used"
    UNUSED = "unused"
    # The store had not synced yet, watching costs nothing if it turns out unused
    ASSUME_USED = "assume_used"
    UNAVAILABLE = "unavailable"

    @property
    def should_watch(self) -> bool:
        return self in (Capability.USED, Capability.ASSUME_USED)


@dataclass(frozen=True)
class DetectedCapabilities:
    security_context_constraints: Capability = Capability.UNAVAILABLE
    monitoring: Capability = Capability.UNAVAILABLE


def probe(store: ObjectStore, kind: ResourceKind) -> Capability:
    """Check whether at least one object of an optional kind exists."""
    try:
        items = store.list(kind)
    except KindNotRegisteredError:
        logger.info(f"{kind.kind} is not served by this cluster, not watching it")
        return Capability.UNAVAILABLE
    except StoreNotReadyError:
        logger.info(f"Object store not synced yet, assuming {kind.kind} is used")
        return Capability.ASSUME_USED
    return Capability.USED if items else Capability.UNUSED


def detect_capabilities(store: ObjectStore) -> DetectedCapabilities:
    capabilities = DetectedCapabilities(
        security_context_constraints=probe(store, SECURITY_CONTEXT_CONSTRAINTS),
        monitoring=probe(store, PROMETHEUS_RULE),
    )
    logger.info(
        f"Detected capabilities: securitycontextconstraints={capabilities.security_context_constraints.value}, "
        f"monitoring={capabilities.monitoring.value}"
    )
    return capabilities
