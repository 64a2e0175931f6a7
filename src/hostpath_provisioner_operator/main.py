"""Main entry point for the Hostpath Provisioner Operator."""

from __future__ import annotations

import logging
from typing import Any

import kopf
from kubernetes import client

from . import health
from . import logging as structured_logging
from .capabilities import DetectedCapabilities, detect_capabilities
from .config import OperatorConfig
from .constants import (
    API_GROUP_VERSION,
    KIND_HOSTPATH_PROVISIONER,
    LABEL_APP,
    MULTI_PURPOSE_NAME,
    PLURAL_HOSTPATH_PROVISIONER,
)
from .controller import Reconciler
from .cryptopolicy import apply_api_server_tls_profile
from .metrics import PrometheusReadinessSink, ReadinessSink
from .store.base import HOSTPATH_PROVISIONER, ObjectStore
from .store.kubernetes import KubernetesObjectStore, get_api_client
from .utils.errors import StoreError
from .utils.events import EventRecorder, KubernetesEventRecorder
from .worker import ReconcileWorker, TriggerQueue

logger = logging.getLogger(__name__)

# Kinds carrying an owner reference to the CR
OWNED_RESOURCES = (
    ("apps/v1", "daemonsets"),
    ("apps/v1", "deployments"),
    ("v1", "serviceaccounts"),
    ("rbac.authorization.k8s.io/v1", "roles"),
    ("rbac.authorization.k8s.io/v1", "rolebindings"),
)

# Kinds found through the k8s-app label
LABELED_RESOURCES = (
    ("storage.k8s.io/v1", "csidrivers"),
    ("rbac.authorization.k8s.io/v1", "clusterroles"),
    ("rbac.authorization.k8s.io/v1", "clusterrolebindings"),
    ("rbac.authorization.k8s.io/v1", "roles"),
    ("rbac.authorization.k8s.io/v1", "rolebindings"),
    ("v1", "services"),
    ("batch/v1", "jobs"),
)

SCC_RESOURCE = ("security.openshift.io/v1", "securitycontextconstraints")
API_SERVER_RESOURCE = ("config.openshift.io/v1", "apiservers")
MONITORING_RESOURCES = (
    ("monitoring.coreos.com/v1", "prometheusrules"),
    ("monitoring.coreos.com/v1", "servicemonitors"),
)


def owner_name(body: Any) -> str | None:
    """Name of the controlling HostPathProvisioner of an object, if any."""
    for ref in body.get("metadata", {}).get("ownerReferences") or []:
        if ref.get("kind") == KIND_HOSTPATH_PROVISIONER and ref.get("controller"):
            return ref.get("name")
    return None


class Operator:
    """Wires the watches, the trigger queue and the reconcile worker together."""

    def __init__(
        self,
        config: OperatorConfig,
        store: ObjectStore,
        recorder: EventRecorder,
        readiness: ReadinessSink,
    ):
        self.config = config
        self.store = store
        self.queue = TriggerQueue()
        self.reconciler = Reconciler(store, config, recorder, readiness)
        self.worker = ReconcileWorker(self.queue, self.reconciler.reconcile, config)

    def enqueue_cr(self, body: Any, **_: Any) -> None:
        name = body.get("metadata", {}).get("name")
        if name:
            self.queue.add(name)

    def enqueue_owner(self, body: Any, **_: Any) -> None:
        name = owner_name(body)
        if name:
            self.queue.add(name)

    def enqueue_singleton(self, body: Any, **_: Any) -> None:
        """Map a labeled object without owner reference to the only CR."""
        labels = body.get("metadata", {}).get("labels") or {}
        if labels.get(LABEL_APP) != MULTI_PURPOSE_NAME:
            return
        try:
            crs = self.store.list(HOSTPATH_PROVISIONER)
        except StoreError as e:
            logger.error(f"Error listing HostPathProvisioners: {e}")
            return
        if len(crs) != 1:
            logger.info("There should be exactly one HostPathProvisioner instance")
            return
        self.queue.add(crs[0]["metadata"]["name"])

    def handle_api_server(self, body: Any, **_: Any) -> None:
        apply_api_server_tls_profile(dict(body))

    def build_registry(self, capabilities: DetectedCapabilities) -> kopf.OperatorRegistry:
        """Register the event handlers, optional kinds only when detected."""
        registry = kopf.OperatorRegistry()

        @kopf.on.startup(registry=registry)
        def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
            # Event handlers only feed the queue, kopf keeps no state on the objects
            settings.posting.enabled = False
            settings.networking.request_timeout = 30.0
            self.start()

        @kopf.on.cleanup(registry=registry)
        def shutdown(**_: Any) -> None:
            self.worker.stop()

        kopf.on.event(API_GROUP_VERSION, PLURAL_HOSTPATH_PROVISIONER, id="cr", registry=registry)(self.enqueue_cr)
        for api_version, plural in OWNED_RESOURCES:
            kopf.on.event(api_version, plural, id=f"owned-{plural}", registry=registry)(self.enqueue_owner)
        for api_version, plural in LABELED_RESOURCES:
            kopf.on.event(
                api_version, plural, id=f"labeled-{plural}", labels={LABEL_APP: MULTI_PURPOSE_NAME}, registry=registry
            )(self.enqueue_singleton)

        if capabilities.security_context_constraints.should_watch:
            api_version, plural = SCC_RESOURCE
            kopf.on.event(api_version, plural, id="labeled-scc", registry=registry)(self.enqueue_singleton)
            api_version, plural = API_SERVER_RESOURCE
            kopf.on.event(api_version, plural, id="apiserver", registry=registry)(self.handle_api_server)
        else:
            logger.info("Not watching SecurityContextConstraints")

        if capabilities.monitoring.should_watch:
            for api_version, plural in MONITORING_RESOURCES:
                kopf.on.event(api_version, plural, id=f"labeled-{plural}", registry=registry)(self.enqueue_singleton)
        else:
            logger.info("Not watching PrometheusRules and ServiceMonitors")

        return registry

    def start(self) -> None:
        if not self.worker.running:
            self.worker.start()
            health.start_metrics_server(self.config.metrics_port, is_ready=lambda: self.worker.running)


def main() -> None:
    structured_logging.setup_structured_logging()
    config = OperatorConfig.from_env()

    api_client = get_api_client()
    store = KubernetesObjectStore.from_config(api_client, config.k8s_rate_limit_per_second)
    recorder = KubernetesEventRecorder(client.CoreV1Api(api_client))
    operator = Operator(config, store, recorder, PrometheusReadinessSink())

    registry = operator.build_registry(detect_capabilities(store))
    kopf.run(registry=registry, standalone=True, clusterwide=True)


if __name__ == "__main__":
    main()
