"""Environment driven configuration for the Hostpath Provisioner Operator."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from . import __version__

DEFAULT_NAMESPACE = "hostpath-provisioner"
DEFAULT_MONITORING_NAMESPACE = "openshift-monitoring"
DEFAULT_PROVISIONER_IMAGE = "quay.io/kubevirt/hostpath-provisioner:latest"
DEFAULT_CSI_PROVISIONER_IMAGE = "quay.io/kubevirt/hostpath-csi-driver:latest"
DEFAULT_NODE_DRIVER_REG_IMAGE = "registry.k8s.io/sig-storage/csi-node-driver-registrar:v2.9.0"
DEFAULT_LIVENESS_PROBE_IMAGE = "registry.k8s.io/sig-storage/livenessprobe:v2.10.0"
DEFAULT_CSI_SNAPSHOT_IMAGE = "registry.k8s.io/sig-storage/csi-snapshotter:v6.3.0"
DEFAULT_OPERATOR_IMAGE = "quay.io/kubevirt/hostpath-provisioner-operator:latest"


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {value!r}") from e


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e


@dataclass(frozen=True)
class Images:
    """Container images used by the generated manifests."""

    provisioner: str = DEFAULT_PROVISIONER_IMAGE
    csi_provisioner: str = DEFAULT_CSI_PROVISIONER_IMAGE
    node_driver_registrar: str = DEFAULT_NODE_DRIVER_REG_IMAGE
    liveness_probe: str = DEFAULT_LIVENESS_PROBE_IMAGE
    csi_snapshotter: str = DEFAULT_CSI_SNAPSHOT_IMAGE
    operator: str = DEFAULT_OPERATOR_IMAGE


@dataclass(frozen=True)
class OperatorConfig:
    """Runtime settings of the operator process.

    Attributes:
        namespace: Namespace the namespaced owned objects are placed in
        operator_version: Version stamped into the CR status
        metrics_port: Port serving /metrics, /healthz and /readyz
        cleanup_requeue_seconds: Poll interval while waiting for pool cleanup
        min_retry_delay: First backoff delay after a failed reconcile
        max_retry_delay: Upper bound for the backoff delay
        retry_backoff: Exponential multiplier for consecutive failures
        k8s_rate_limit_per_second: Client side throttle for API calls
        verbosity: Log verbosity passed to the provisioner containers
        monitoring_namespace: Namespace of the Prometheus instance scraping the operator
        images: Container images for the generated manifests
    """

    namespace: str = DEFAULT_NAMESPACE
    operator_version: str = __version__
    metrics_port: int = 8080
    cleanup_requeue_seconds: float = 1.0
    min_retry_delay: float = 1.0
    max_retry_delay: float = 60.0
    retry_backoff: float = 2.0
    k8s_rate_limit_per_second: float = 10.0
    verbosity: str = "1"
    monitoring_namespace: str = DEFAULT_MONITORING_NAMESPACE
    images: Images = field(default_factory=Images)

    @classmethod
    def from_env(cls) -> OperatorConfig:
        """Build the configuration from the process environment."""
        images = Images(
            provisioner=os.getenv("PROVISIONER_IMAGE", DEFAULT_PROVISIONER_IMAGE),
            csi_provisioner=os.getenv("CSI_PROVISIONER_IMAGE", DEFAULT_CSI_PROVISIONER_IMAGE),
            node_driver_registrar=os.getenv("NODE_DRIVER_REG_IMAGE", DEFAULT_NODE_DRIVER_REG_IMAGE),
            liveness_probe=os.getenv("LIVENESS_PROBE_IMAGE", DEFAULT_LIVENESS_PROBE_IMAGE),
            csi_snapshotter=os.getenv("CSI_SNAPSHOT_IMAGE", DEFAULT_CSI_SNAPSHOT_IMAGE),
            operator=os.getenv("OPERATOR_IMAGE", DEFAULT_OPERATOR_IMAGE),
        )
        config = cls(
            namespace=os.getenv("INSTALLER_NAMESPACE", DEFAULT_NAMESPACE),
            operator_version=os.getenv("OPERATOR_VERSION") or __version__,
            metrics_port=_int_env("METRICS_PORT", 8080),
            cleanup_requeue_seconds=_float_env("CLEANUP_REQUEUE_SECONDS", 1.0),
            min_retry_delay=_float_env("MIN_RETRY_DELAY_SECONDS", 1.0),
            max_retry_delay=_float_env("MAX_RETRY_DELAY_SECONDS", 60.0),
            retry_backoff=_float_env("RETRY_BACKOFF", 2.0),
            k8s_rate_limit_per_second=_float_env("K8S_RATE_LIMIT_PER_SECOND", 10.0),
            verbosity=os.getenv("VERBOSITY", "1"),
            monitoring_namespace=os.getenv("MONITORING_NAMESPACE", DEFAULT_MONITORING_NAMESPACE),
            images=images,
        )
        if config.cleanup_requeue_seconds <= 0:
            raise ValueError("CLEANUP_REQUEUE_SECONDS must be positive")
        if config.k8s_rate_limit_per_second <= 0:
            raise ValueError("K8S_RATE_LIMIT_PER_SECOND must be positive")
        return config
