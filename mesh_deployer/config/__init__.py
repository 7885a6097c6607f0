"""Configuration for the mesh deployer."""

from mesh_deployer.config.settings import (
    DeployerConfig,
    KeycloakConfig,
    NetworkConfig,
    PortsConfig,
    ReadinessConfig,
    RegistriesConfig,
    SidecarConfig,
    TimeoutsConfig,
    VaultConfig,
)

__all__ = [
    "DeployerConfig",
    "KeycloakConfig",
    "NetworkConfig",
    "PortsConfig",
    "ReadinessConfig",
    "RegistriesConfig",
    "SidecarConfig",
    "TimeoutsConfig",
    "VaultConfig",
]
