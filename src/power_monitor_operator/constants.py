"""Constants for the Power Monitor Operator."""

# API Group
API_GROUP = "kepler.system.sustainable.computing.io"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_POWER_MONITOR = "PowerMonitor"
KIND_POWER_MONITOR_INTERNAL = "PowerMonitorInternal"
PLURAL_POWER_MONITOR = "powermonitors"
PLURAL_POWER_MONITOR_INTERNAL = "powermonitorinternals"

# Only a single PowerMonitor with this name is reconciled
POWER_MONITOR_INSTANCE_NAME = "powermonitor"

# Labels
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
LABEL_PART_OF = "app.kubernetes.io/part-of"
LABEL_COMPONENT = "app.kubernetes.io/component"
LABEL_INSTANCE = "app.kubernetes.io/instance"
OPERATOR_NAME = "power-monitor-operator"

# Annotations
ANNOTATION_TOKEN_EXPIRATION = f"{API_GROUP}/token-expiration"
ANNOTATION_CONFIGMAP_HASH = f"{API_GROUP}/configmap-hash"
ANNOTATION_SECRET_HASH_PREFIX = f"{API_GROUP}/secret-hash-"

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"

# Field Manager
FIELD_MANAGER = "power-monitor-operator"

# Condition Types
COND_RECONCILED = "Reconciled"
COND_AVAILABLE = "Available"

# Condition Statuses
STATUS_TRUE = "True"
STATUS_FALSE = "False"
STATUS_UNKNOWN = "Unknown"
STATUS_DEGRADED = "Degraded"

# Condition Reasons
REASON_RECONCILE_SUCCESS = "ReconcileSuccess"
REASON_RECONCILE_ERROR = "ReconcileError"
REASON_INVALID_RESOURCE = "InvalidPowerMonitorResource"
REASON_SECRET_NOT_FOUND = "SecretNotFound"
REASON_DAEMONSET_NOT_FOUND = "DaemonSetNotFound"
REASON_DAEMONSET_ERROR = "DaemonSetError"
REASON_DAEMONSET_OUT_OF_SYNC = "DaemonSetOutOfSync"
REASON_DAEMONSET_PODS_NOT_RUNNING = "DaemonSetPodsNotRunning"
REASON_DAEMONSET_ROLLOUT_IN_PROGRESS = "DaemonSetRolloutInProgress"
REASON_DAEMONSET_PARTIALLY_AVAILABLE = "DaemonSetPartiallyAvailable"
REASON_DAEMONSET_READY = "DaemonSetReady"

# Security
SECURITY_MODE_RBAC = "rbac"
SECURITY_MODE_NONE = "none"

# User workload monitoring
UWM_NAMESPACE = "openshift-user-workload-monitoring"
UWM_SERVICE_ACCOUNT_NAME = "prometheus-user-workload"

# Well-known object names in the deployment namespace
SECRET_UWM_TOKEN_NAME = "prometheus-user-workload-token"
SECRET_KUBE_RBAC_PROXY_CONFIG_NAME = "power-monitor-kube-rbac-proxy-config"
SECRET_TLS_CERT_NAME = "power-monitor-tls"
CONFIGMAP_CA_BUNDLE_NAME = "power-monitor-serving-certs-ca-bundle"
KEPLER_CONFIG_FILE = "config.yaml"
KEPLER_PORT = 28282
KUBE_RBAC_PROXY_PORT = 8443

# Cluster flavours
CLUSTER_KUBERNETES = "kubernetes"
CLUSTER_OPENSHIFT = "openshift"

# Timing defaults (seconds)
REQUEUE_DELAY_SECONDS = 5.0
POLL_INTERVAL_SECONDS = 3.0
POLL_TIMEOUT_SECONDS = 10.0
POLL_TIMEOUT_OPENSHIFT_SECONDS = 60.0
DELETE_POLL_INTERVAL_SECONDS = 5.0
DELETE_MIN_WAIT_SECONDS = 30.0
UNPARSEABLE_EXPIRY_REQUEUE_SECONDS = 300.0

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_RECONCILE_SUCCEEDED = "ReconcileSucceeded"
EVENT_REASON_FINALIZER_ADDED = "FinalizerAdded"
EVENT_REASON_FINALIZER_REMOVED = "FinalizerRemoved"
EVENT_REASON_TOKEN_ISSUED = "TokenIssued"
EVENT_REASON_TOKEN_EXPIRED = "TokenExpired"
EVENT_REASON_INVALID_RESOURCE = "InvalidResource"
