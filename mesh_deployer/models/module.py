"""
Pydantic models for module identity and resolved deployment intent.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from mesh_deployer import constants


class ResourceSpec(BaseModel):
    """Container resource limits. Memory values are in MiB."""

    cpu_count: int = Field(default=constants.MODULE_CPU)
    memory_reservation: int = Field(default=constants.MODULE_MEMORY_RESERVATION)
    memory: int = Field(default=constants.MODULE_MEMORY)
    memory_swap: int = Field(default=constants.MODULE_SWAP)
    oom_kill_disable: bool = Field(default=False)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def sidecar_defaults(cls) -> "ResourceSpec":
        return cls(
            cpu_count=constants.SIDECAR_CPU,
            memory_reservation=constants.SIDECAR_MEMORY_RESERVATION,
            memory=constants.SIDECAR_MEMORY,
            memory_swap=constants.SIDECAR_SWAP,
        )


class ModuleSpec(BaseModel):
    """
    Resolved deployment intent for one module.

    Host ports are 0 when the module is not deployed. When both the module
    and its sidecar are deployed, all four host ports are set and distinct.
    """

    name: str = Field(..., description="Module name")
    deploy_module: bool = Field(default=True)
    deploy_sidecar: bool = Field(default=True)
    use_vault: bool = Field(default=False)
    use_okapi_url: bool = Field(default=False)
    disable_system_user: bool = Field(default=False)
    local_descriptor_path: str = Field(
        default="", description="Local module descriptor; empty means fetch from registry"
    )
    version: Optional[str] = Field(None, description="Version override")
    module_server_port: int = Field(default=0)
    module_debug_port: int = Field(default=0)
    sidecar_server_port: int = Field(default=0)
    sidecar_debug_port: int = Field(default=0)
    private_port: int = Field(default=constants.PRIVATE_SERVER_PORT)
    env: Dict[str, Any] = Field(default_factory=dict)
    resources: Dict[str, Any] = Field(default_factory=dict)
    volumes: List[str] = Field(default_factory=list)

    @property
    def host_ports(self) -> List[int]:
        """All non-zero host ports held by this module."""
        ports = [
            self.module_server_port,
            self.module_debug_port,
            self.sidecar_server_port,
            self.sidecar_debug_port,
        ]
        return [port for port in ports if port]


class RegistryModuleMetadata(BaseModel):
    """Identity derived from a registry module id."""

    name: str
    version: Optional[str] = None
    sidecar_name: str

    model_config = ConfigDict(frozen=True)


class RegistryModule(BaseModel):
    """One module entry from a registry install listing."""

    id: str
    action: Optional[str] = None
    metadata: RegistryModuleMetadata

    model_config = ConfigDict(frozen=True)

    @property
    def name(self) -> str:
        return self.metadata.name
