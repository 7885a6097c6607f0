"""
Shared constants for the mesh deployer.

Defaults here are used when a DeployerConfig does not override them.
"""

# Module name classification
MANAGEMENT_MODULE_PREFIX = "mgr-"
EDGE_MODULE_PREFIX = "edge-"
EDGE_SIDECAR_PREFIX = "edge"
SIDECAR_SUFFIX = "-sc"
SIDECAR_PROJECT_NAME = "folio-module-sidecar"
OKAPI_MODULE_ID = "okapi"

# In-container ports
PRIVATE_SERVER_PORT = 8081
PRIVATE_DEBUG_PORT = 5005

# Readiness
MODULE_READINESS_MAX_RETRIES = 50
MODULE_READINESS_WAIT_SECONDS = 10.0
HEALTH_CHECK_PATH = "/admin/health"

# Container runtime timeouts (seconds)
DOCKER_LIST_TIMEOUT = 30.0
DOCKER_PULL_TIMEOUT = 300.0
DOCKER_DEPLOY_TIMEOUT = 120.0
DOCKER_UNDEPLOY_TIMEOUT = 60.0
DOCKER_LOGS_TIMEOUT = 30.0

# Multiplexed log stream framing: 8-byte header, payload size at offset 4
DOCKER_LOG_HEADER_SIZE = 8
DOCKER_LOG_SIZE_OFFSET = 4

VAULT_ROOT_TOKEN_MARKER = "init.sh: Root VAULT TOKEN is:"

# Module resources (MiB for memory values)
MODULE_CPU = 1
MODULE_MEMORY_RESERVATION = 120
MODULE_MEMORY = 750
MODULE_SWAP = -1

SIDECAR_CPU = 1
SIDECAR_MEMORY_RESERVATION = 64
SIDECAR_MEMORY = 450
SIDECAR_SWAP = -1

# Image namespaces
RELEASE_NAMESPACE = "folioorg"
SNAPSHOT_NAMESPACE = "folioci"
LOCAL_NAMESPACE = "foliolocal"
NAMESPACE_OVERRIDE_ENV = "AWS_ECR_FOLIO_REPO"
SNAPSHOT_MARKER = "SNAPSHOT"

# Module id parsing: name, numeric version head, version tail
MODULE_ID_PATTERN = r"^([a-z_-]+)([\d_.-]+)([-\w.]+)$"

# Container name patterns (docker name filters accept regular expressions)
PROFILE_CONTAINER_PATTERN = "^{prefix}-{profile}-"
MANAGEMENT_CONTAINER_PATTERN = "^{prefix}-mgr-"
SINGLE_PAIR_CONTAINER_PATTERN = "^({prefix}-{profile}-)({name}|{name}-sc)$"

# Config keys inside a backend module entry
DEPLOY_MODULE_KEY = "deploy_module"
DEPLOY_SIDECAR_KEY = "deploy_sidecar"
USE_VAULT_KEY = "use_vault"
USE_OKAPI_URL_KEY = "use_okapi_url"
DISABLE_SYSTEM_USER_KEY = "disable_system_user"
LOCAL_DESCRIPTOR_PATH_KEY = "local_descriptor_path"
VERSION_KEY = "version"
PORT_KEY = "port"
PRIVATE_PORT_KEY = "port_server"
ENV_KEY = "environment"
RESOURCES_KEY = "resources"
VOLUMES_KEY = "volumes"

# Keys inside a resources mapping
CPU_COUNT_KEY = "cpu_count"
MEMORY_RESERVATION_KEY = "memory_reservation"
MEMORY_KEY = "memory"
MEMORY_SWAP_KEY = "memory_swap"
OOM_KILL_DISABLE_KEY = "oom_kill_disable"

# Volume placeholder expanded to the user's config home on Windows hosts
HOME_PLACEHOLDER = "$EUREKA"
CONFIG_HOME_DIR = ".eureka"
