"""mesh-deployer - Deployment orchestration for module and sidecar container pairs."""

__version__ = "1.0.0"

from .config import DeployerConfig
from .deployment import DeploymentOrchestrator, ModulePairing

__all__ = ["DeployerConfig", "DeploymentOrchestrator", "ModulePairing"]
