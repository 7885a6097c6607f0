"""
Exception hierarchy for the mesh deployer.

Every failure the core surfaces derives from DeployerError so callers can
catch one type at the command boundary.
"""

from typing import Optional


class DeployerError(Exception):
    """Base class for all deployer failures."""


class ConfigurationError(DeployerError):
    """Raised when module configuration cannot be resolved."""


class LocalDescriptorNotFound(ConfigurationError):
    """Raised when a module points at a local descriptor that does not exist."""

    def __init__(self, path: str, module_name: str):
        self.path = path
        self.module_name = module_name
        super().__init__(f"Local descriptor {path} for module {module_name} not found")


class SidecarVersionNotFound(ConfigurationError):
    """Raised when no sidecar version is configured or listed in any registry."""

    def __init__(self) -> None:
        super().__init__("Sidecar version not found in registry or in the current config")


class PortExhausted(DeployerError):
    """Raised when the pre-reserved port pool cannot satisfy a request."""

    def __init__(self, start: int, end: int, requested: int = 1):
        self.start = start
        self.end = end
        self.requested = requested
        super().__init__(f"Failed to find {requested} free TCP port(s) in range: {start}-{end}")


class ContainerRuntimeError(DeployerError):
    """Raised when a container runtime operation fails."""

    def __init__(self, operation: str, target: str, reason: Optional[str] = None):
        self.operation = operation
        self.target = target
        message = f"Container runtime {operation} failed for {target}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class RuntimeTimeout(ContainerRuntimeError):
    """Raised when a container runtime call exceeds its timeout."""

    def __init__(self, operation: str, target: str, seconds: float):
        self.seconds = seconds
        super().__init__(operation, target, f"timed out after {seconds:g}s")


class ModulePullFailed(ContainerRuntimeError):
    """Raised when an image pull reports an error event."""

    def __init__(self, image: str, reason: str):
        self.image = image
        super().__init__("pull", image, reason)


class SidecarDeployFailed(ContainerRuntimeError):
    """Raised when a sidecar container could not be deployed."""

    def __init__(self, sidecar_name: str, cause: Exception):
        self.sidecar_name = sidecar_name
        self.cause = cause
        super().__init__("deploy", sidecar_name, str(cause))


class ModuleNotReady(DeployerError):
    """Raised when a module never answered its health check within the retry budget."""

    def __init__(self, module_name: str):
        self.module_name = module_name
        super().__init__(f"Module {module_name} is unready and out of retries")


class DiscoveryRegistrationFailed(DeployerError):
    """Raised when the discovery registry rejects a location update."""

    def __init__(self, module_id: str, status_code: int):
        self.module_id = module_id
        self.status_code = status_code
        super().__init__(
            f"Discovery registration for {module_id} failed with status {status_code}"
        )
