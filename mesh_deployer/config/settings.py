"""
Configuration models for the mesh deployer.

The configuration is loaded once from YAML and passed explicitly to every
component that needs it.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field

from mesh_deployer import constants

logger = logging.getLogger(__name__)


class NetworkConfig(BaseModel):
    """Container network settings."""

    name: str = Field(default="eureka", description="Docker network every container joins")
    alias: str = Field(default="eureka-net", description="Network alias given to containers")
    mesh_domain: str = Field(default="eureka", description="In-mesh DNS domain suffix")
    host_ip: str = Field(default="0.0.0.0", description="Host address ports are bound to")


class PortsConfig(BaseModel):
    """Host port pool settings."""

    start: int = Field(default=30000, description="First port of the reserved pool")
    end: int = Field(default=30999, description="Last port of the reserved pool (inclusive)")
    reserved: List[int] = Field(default_factory=list, description="Ports never handed out")
    check_system: bool = Field(
        default=True, description="Bind-test a port on the host before handing it out"
    )
    private_server_port: int = Field(
        default=constants.PRIVATE_SERVER_PORT, description="In-container server port"
    )
    private_debug_port: int = Field(
        default=constants.PRIVATE_DEBUG_PORT, description="In-container debug port"
    )


class ReadinessConfig(BaseModel):
    """Health check settings."""

    max_retries: int = Field(default=constants.MODULE_READINESS_MAX_RETRIES)
    wait_seconds: float = Field(default=constants.MODULE_READINESS_WAIT_SECONDS)
    health_path: str = Field(default=constants.HEALTH_CHECK_PATH)
    probe_timeout: float = Field(default=15.0, description="Timeout of a single probe call")


class TimeoutsConfig(BaseModel):
    """Per-operation container runtime timeouts in seconds."""

    listing: float = Field(default=constants.DOCKER_LIST_TIMEOUT)
    pull: float = Field(default=constants.DOCKER_PULL_TIMEOUT)
    deploy: float = Field(default=constants.DOCKER_DEPLOY_TIMEOUT)
    undeploy: float = Field(default=constants.DOCKER_UNDEPLOY_TIMEOUT)
    logs: float = Field(default=constants.DOCKER_LOGS_TIMEOUT)


class RegistriesConfig(BaseModel):
    """Image namespaces and module registry sources."""

    release_namespace: str = Field(default=constants.RELEASE_NAMESPACE)
    snapshot_namespace: str = Field(default=constants.SNAPSHOT_NAMESPACE)
    local_namespace: str = Field(
        default=constants.LOCAL_NAMESPACE, description="Namespace of locally built images"
    )
    namespace_override_env: str = Field(
        default=constants.NAMESPACE_OVERRIDE_ENV,
        description="Environment variable that overrides the image namespace",
    )
    install_json_urls: Dict[str, str] = Field(
        default_factory=dict, description="Registry name -> install JSON URL"
    )


class SidecarConfig(BaseModel):
    """Sidecar image settings."""

    image: str = Field(default=constants.SIDECAR_PROJECT_NAME)
    version: Optional[str] = Field(None, description="Pinned sidecar version")
    local_image: Optional[str] = Field(
        None, description="Locally built image name; never pulled when set"
    )
    resources: Dict[str, Any] = Field(default_factory=dict)
    command: List[str] = Field(default_factory=list, description="Optional container command")


class VaultConfig(BaseModel):
    address: str = Field(default="http://vault.eureka:8200")


class KeycloakConfig(BaseModel):
    url: str = Field(default="http://keycloak.eureka:8080")
    admin_client_id: str = Field(default="")
    service_client_id: str = Field(default="")
    login_client_suffix: str = Field(default="")


class DeployerConfig(BaseModel):
    """Complete deployer configuration."""

    profile: str = Field(default="combined", description="Profile scoping container names")
    container_prefix: str = Field(default="eureka")
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    ports: PortsConfig = Field(default_factory=PortsConfig)
    readiness: ReadinessConfig = Field(default_factory=ReadinessConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    gateway_url: str = Field(default="http://localhost", description="Host-side gateway URL")
    gateway_port: int = Field(default=8000, description="Discovery API port on the gateway")
    registries: RegistriesConfig = Field(default_factory=RegistriesConfig)
    sidecar: SidecarConfig = Field(default_factory=SidecarConfig)
    backend_modules: Dict[str, Optional[Dict[str, Any]]] = Field(
        default_factory=dict, description="Raw per-module entries, parsed tolerantly"
    )
    global_env: Dict[str, Any] = Field(default_factory=dict)
    sidecar_env: Dict[str, Any] = Field(default_factory=dict)
    vault: VaultConfig = Field(default_factory=VaultConfig)
    keycloak: KeycloakConfig = Field(default_factory=KeycloakConfig)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "DeployerConfig":
        """
        Load configuration from a YAML file.

        A missing file yields the default configuration.
        """
        config_path = Path(path)
        if not config_path.exists():
            logger.warning(f"Config file {config_path} not found, using defaults")
            return cls()

        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def save(self, path: Union[str, Path]) -> None:
        """Write the configuration to a YAML file."""
        config_path = Path(path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, sort_keys=False)
        logger.info(f"Saved configuration to {config_path}")

    def global_env_list(self) -> List[str]:
        """Global env template as KEY=value entries."""
        return [f"{key}={value}" for key, value in self.global_env.items()]

    def sidecar_env_list(self) -> List[str]:
        """Sidecar env template as KEY=value entries."""
        return [f"{key}={value}" for key, value in self.sidecar_env.items()]
