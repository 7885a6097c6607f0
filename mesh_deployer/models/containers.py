"""
Models describing a deployment batch and the containers it produces.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from mesh_deployer.models.module import ModuleSpec, RegistryModule, ResourceSpec


class Containers(BaseModel):
    """
    One deployment batch's working set.

    Built once by the caller and treated as read-only afterwards, so it can be
    shared between concurrent sidecar tasks.
    """

    registry_modules: Dict[str, List[RegistryModule]] = Field(
        default_factory=dict, description="Registry name -> listed modules"
    )
    module_specs: Dict[str, ModuleSpec] = Field(
        default_factory=dict, description="Module name -> resolved spec"
    )
    global_env: List[str] = Field(default_factory=list)
    sidecar_env: List[str] = Field(default_factory=list)
    vault_root_token: str = Field(default="", description="Token injected into vault env")
    management_only: bool = Field(
        default=False, description="Deploy only management modules in this pass"
    )

    model_config = ConfigDict(frozen=True)

    def find_registry_module(self, name: str) -> Optional[RegistryModule]:
        """Return the first listed registry module with the given name."""
        for modules in self.registry_modules.values():
            for module in modules:
                if module.metadata.name == name:
                    return module
        return None


class ContainerSpec(BaseModel):
    """Everything the runtime needs to create and start one container."""

    name: str = Field(..., description="Container name")
    image: str
    pull_image: bool = Field(default=True)
    env: List[str] = Field(default_factory=list)
    server_port: int = Field(..., description="Host port bound to the private server port")
    debug_port: int = Field(..., description="Host port bound to the private debug port")
    private_server_port: int
    private_debug_port: int
    resources: ResourceSpec = Field(default_factory=ResourceSpec)
    volumes: List[str] = Field(default_factory=list)
    command: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class ContainerSummary(BaseModel):
    """Runtime listing entry for one container."""

    id: str
    names: List[str] = Field(default_factory=list)
    image: str = ""
    state: str = ""

    @property
    def name(self) -> str:
        """First container name without the runtime's leading slash."""
        return self.names[0].lstrip("/") if self.names else self.id


class CreateResult(BaseModel):
    id: str
    warnings: List[str] = Field(default_factory=list)
