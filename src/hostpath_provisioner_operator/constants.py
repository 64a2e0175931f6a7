"""Constants for the Hostpath Provisioner Operator."""

# API Group
API_GROUP = "hostpathprovisioner.kubevirt.io"
API_VERSION = "v1beta1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_HOSTPATH_PROVISIONER = "HostPathProvisioner"
PLURAL_HOSTPATH_PROVISIONER = "hostpathprovisioners"

# Object names
MULTI_PURPOSE_NAME = "hostpath-provisioner"
CSI_NAME = f"{MULTI_PURPOSE_NAME}-csi"
PROVISIONER_SERVICE_ACCOUNT = "hostpath-provisioner-admin"
PROVISIONER_SERVICE_ACCOUNT_CSI = "hostpath-provisioner-admin-csi"
CSI_DRIVER_NAME = "kubevirt.io.hostpath-provisioner"
LEGACY_PROVISIONER_NAME = "kubevirt.io/hostpath-provisioner"
PROMETHEUS_RULE_NAME = "prometheus-hpp-rules"
SERVICE_MONITOR_NAME = "service-monitor-hpp"
MONITORING_RBAC_NAME = "hostpath-provisioner-monitoring"
METRICS_SERVICE_NAME = "hpp-prometheus-metrics"
STORAGE_POOL_PREFIX = "hpp-pool"
CLEANUP_JOB_PREFIX = "cleanup-pool"

# Every service account name the provisioner has ever used
RBAC_NAMES = (
    PROVISIONER_SERVICE_ACCOUNT,
    PROVISIONER_SERVICE_ACCOUNT_CSI,
    MULTI_PURPOSE_NAME,
)

# Labels
LABEL_APP = "k8s-app"
LABEL_PART_OF = "app.kubernetes.io/part-of"
LABEL_STORAGE_POOL = "hpp.kubevirt.io/storagePool"
LABEL_CLEANUP_POOL = "hpp.kubevirt.io/cleanupPool"
LABEL_NODE = "hpp.kubevirt.io/node"
LABEL_PROMETHEUS = "prometheus.hostpathprovisioner.kubevirt.io"

# Finalizers
FINALIZER = "finalizer.delete.hostpath-provisioner"

# Field Manager
FIELD_MANAGER = "hostpath-provisioner-operator"

# Feature gates
FEATURE_GATE_SNAPSHOTTING = "Snapshotting"

# Condition Types
COND_AVAILABLE = "Available"
COND_PROGRESSING = "Progressing"
COND_DEGRADED = "Degraded"

# Event Reasons
EVENT_REASON_DEPLOY_STARTED = "DeployStarted"
EVENT_REASON_UPGRADE_STARTED = "UpgradeStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_PROVISIONER_HEALTHY = "ProvisionerHealthy"

# Condition Reasons
REASON_COMPLETE = "Complete"
REASON_DEGRADED = "Degraded"
REASON_STORAGE_POOL_NOT_READY = "StoragePoolNotReady"

# Messages
MESSAGE_DEPLOY_STARTED = "Started Deployment"
MESSAGE_PROVISIONER_HEALTHY = "Provisioner Healthy"
MESSAGE_APPLICATION_AVAILABLE = "Application Available"
MESSAGE_DEGRADED = "CR is deployed but DaemonSets are not ready"

# Readiness gauge values
READY = 1
NOT_READY = 0
READY_UNKNOWN = -1
