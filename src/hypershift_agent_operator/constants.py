"""Constants for the HyperShift Agent Service Operator."""

# API Group
API_GROUP = "agent-install.openshift.io"
API_VERSION = "v1beta1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_HYPERSHIFT_AGENT_SERVICE_CONFIG = "HypershiftAgentServiceConfig"
PLURAL_HYPERSHIFT_AGENT_SERVICE_CONFIG = "hypershiftagentserviceconfigs"

# Labels
LABEL_MANAGED_BY = f"{API_GROUP}/managed-by"
LABEL_OWNER_NAME = f"{API_GROUP}/owner-name"
LABEL_APP = "app"
# Hub CRDs installed by the operator bundle carry this label suffixed with the namespace
LABEL_OPERATOR_CRD_PREFIX = "operators.coreos.com/assisted-service-operator"

# Finalizers
FINALIZER = f"agentserviceconfig.{API_GROUP}/ai-deprovision"

# Field Manager
FIELD_MANAGER = "hypershift-agent-operator"

# Connection secret
KUBECONFIG_SECRET_KEY = "kubeconfig"
KUBECONFIG_VOLUME_NAME = "kubeconfig"
KUBECONFIG_MOUNT_PATH = "/etc/kube"
KUBECONFIG_ENV_VAR = "KUBECONFIG"

# Managed resource names
SERVICE_NAME = "assisted-service"
SERVICE_ACCOUNT_NAME = "assisted-service"
IMAGE_SERVICE_NAME = "assisted-image-service"
DATABASE_NAME = "postgres"
LEADER_ELECTION_ROLE_NAME = "assisted-service"
CLUSTER_ROLE_NAME = "assisted-service-manager-role"
CLUSTER_ROLE_BINDING_NAME = "assisted-service-manager-rolebinding"

# Default images, overridable from the environment
DEFAULT_SERVICE_IMAGE = "quay.io/edge-infrastructure/assisted-service:latest"
DEFAULT_IMAGE_SERVICE_IMAGE = "quay.io/edge-infrastructure/assisted-image-service:latest"
DEFAULT_DATABASE_IMAGE = "quay.io/sclorg/postgresql-12-c8s:latest"

# Condition Types
COND_RECONCILE_COMPLETED = "ReconcileCompleted"
COND_DEPLOYMENTS_HEALTHY = "DeploymentsHealthy"

# Condition Reasons
REASON_RECONCILE_SUCCEEDED = "ReconcileSucceeded"
REASON_KUBECONFIG_SECRET_FETCH_FAILURE = "KubeconfigSecretFetchFailure"
REASON_SPOKE_CLIENT_CREATION_FAILURE = "SpokeClientCreationFailure"
REASON_AGENT_INSTALL_CRDS_UNAVAILABLE = "AgentInstallCRDsUnavailable"
REASON_SPOKE_RESOURCES_SYNC_FAILURE = "SpokeResourcesSyncFailure"
REASON_HUB_RESOURCES_SYNC_FAILURE = "HubResourcesSyncFailure"
REASON_DEPLOYMENTS_HEALTHY = "DeploymentsHealthy"
REASON_DEPLOYMENTS_NOT_HEALTHY = "DeploymentsNotHealthy"
REASON_DEPLOYMENTS_STATUS_UNKNOWN = "DeploymentsStatusUnknown"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_RECONCILE_SUCCEEDED = "ReconcileSucceeded"
EVENT_REASON_FINALIZER_REMOVED = "FinalizerRemoved"
