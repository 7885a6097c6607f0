"""
Model of one module and sidecar pair being rewired.
"""

from typing import Optional

from pydantic import BaseModel, Field

from mesh_deployer.models.containers import Containers
from mesh_deployer.models.module import ModuleSpec, RegistryModule


class ModulePair(BaseModel):
    """
    Live state of exactly one module and its sidecar.

    Created per interception or upgrade request and updated in place as new
    ports and versions are assigned. A None URL means the default in-mesh
    address is used.
    """

    id: str = Field(..., description="Registry module id, e.g. mod-users-19.3.0")
    module_name: str
    module_url: Optional[str] = None
    sidecar_url: Optional[str] = None
    namespace: Optional[str] = Field(None, description="Image namespace for an upgraded module")
    spec: ModuleSpec
    registry_module: RegistryModule
    containers: Containers

    def clear_urls(self) -> None:
        self.module_url = None
        self.sidecar_url = None

    @property
    def sidecar_name(self) -> str:
        return self.registry_module.metadata.sidecar_name

    @property
    def version(self) -> Optional[str]:
        return self.spec.version or self.registry_module.metadata.version
