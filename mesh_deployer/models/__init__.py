"""Pydantic models for the mesh deployer."""

from mesh_deployer.models.containers import (
    Containers,
    ContainerSpec,
    ContainerSummary,
    CreateResult,
)
from mesh_deployer.models.module import (
    ModuleSpec,
    RegistryModule,
    RegistryModuleMetadata,
    ResourceSpec,
)
from mesh_deployer.models.pair import ModulePair

__all__ = [
    "Containers",
    "ContainerSpec",
    "ContainerSummary",
    "CreateResult",
    "ModulePair",
    "ModuleSpec",
    "RegistryModule",
    "RegistryModuleMetadata",
    "ResourceSpec",
]
