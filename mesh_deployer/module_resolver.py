"""
Resolution of raw backend module configuration into typed ModuleSpecs.

Entries are parsed tolerantly: a field holding a value of the wrong type
falls back to that field's default instead of failing. Existing
configuration files rely on this.
"""

import logging
import os
import sys
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from mesh_deployer import constants
from mesh_deployer.errors import ConfigurationError, LocalDescriptorNotFound
from mesh_deployer.models.module import ModuleSpec
from mesh_deployer.port_manager import PortAllocator

logger = logging.getLogger(__name__)


def is_management_module(name: str) -> bool:
    return name.startswith(constants.MANAGEMENT_MODULE_PREFIX)


def is_edge_module(name: str) -> bool:
    return name.startswith(constants.EDGE_MODULE_PREFIX)


def format_version(value: Any) -> Optional[str]:
    """
    Render a configured version as a string.

    Numbers are printed in their shortest plain decimal form, so 1.5 becomes
    "1.5" and 2.0 becomes "2". Anything that is neither a number nor a
    string yields None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        text = f"{Decimal(repr(value)):f}"
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text
    return None


class ModuleSpecResolver:
    """Turns the backend_modules configuration into port-assigned ModuleSpecs."""

    def __init__(self, config, allocator: PortAllocator):
        """
        Args:
            config: DeployerConfig supplying defaults and the raw module entries
            allocator: Port pool shared by the whole deployment batch
        """
        self.config = config
        self.allocator = allocator

    @property
    def default_private_port(self) -> int:
        return self.config.ports.private_server_port

    def resolve(
        self,
        backend_modules: Optional[Mapping[str, Any]] = None,
        management_only: Optional[bool] = None,
    ) -> Dict[str, ModuleSpec]:
        """
        Resolve every configured module.

        Args:
            backend_modules: Raw entries; defaults to config.backend_modules
            management_only: When set, keep only management (True) or only
                ordinary (False) modules

        Returns:
            Module name -> ModuleSpec, in configuration order

        Raises:
            LocalDescriptorNotFound: A configured local descriptor is missing
            ConfigurationError: A configured volume path is missing
            PortExhausted: The port pool ran dry
        """
        entries = self.config.backend_modules if backend_modules is None else backend_modules
        specs: Dict[str, ModuleSpec] = {}

        if not entries:
            logger.info("No backend modules were read")
            return specs

        for name, value in entries.items():
            if management_only is not None and is_management_module(name) != management_only:
                continue

            spec = self.resolve_one(name, value)
            specs[name] = spec
            logger.debug(
                f"Read backend module {name} version={spec.version} ports={spec.host_ports}"
            )

        return specs

    def resolve_one(self, name: str, value: Any) -> ModuleSpec:
        """Resolve one raw entry, allocating its host ports."""
        if value is None:
            spec = self._default_spec(name)
        elif isinstance(value, Mapping):
            spec = self._configured_spec(name, value)
        else:
            logger.warning(f"Backend module {name} entry is not a mapping, using defaults")
            spec = self._default_spec(name)

        self._allocate_remaining_ports(spec)
        return spec

    def _default_spec(self, name: str) -> ModuleSpec:
        return ModuleSpec(
            name=name,
            deploy_module=True,
            deploy_sidecar=self._sidecar_allowed(name),
            module_server_port=self.allocator.allocate_one(),
            private_port=self.default_private_port,
        )

    def _configured_spec(self, name: str, entry: Mapping[str, Any]) -> ModuleSpec:
        deploy_module = _get_bool(entry, constants.DEPLOY_MODULE_KEY, True)
        deploy_sidecar = False
        if deploy_module and self._sidecar_allowed(name):
            deploy_sidecar = _get_bool(entry, constants.DEPLOY_SIDECAR_KEY, True)

        local_descriptor_path = _get_str(entry, constants.LOCAL_DESCRIPTOR_PATH_KEY, "")
        if local_descriptor_path and not os.path.exists(local_descriptor_path):
            raise LocalDescriptorNotFound(local_descriptor_path, name)

        return ModuleSpec(
            name=name,
            deploy_module=deploy_module,
            deploy_sidecar=deploy_sidecar,
            use_vault=_get_bool(entry, constants.USE_VAULT_KEY, False),
            use_okapi_url=_get_bool(entry, constants.USE_OKAPI_URL_KEY, False),
            disable_system_user=_get_bool(entry, constants.DISABLE_SYSTEM_USER_KEY, False),
            local_descriptor_path=local_descriptor_path,
            version=format_version(entry.get(constants.VERSION_KEY)),
            module_server_port=self._server_port(entry, deploy_module),
            private_port=_get_int(entry, constants.PRIVATE_PORT_KEY, self.default_private_port),
            env=_get_mapping(entry, constants.ENV_KEY),
            resources=_get_mapping(entry, constants.RESOURCES_KEY),
            volumes=self._volumes(name, entry),
        )

    def _sidecar_allowed(self, name: str) -> bool:
        return not is_management_module(name) and not is_edge_module(name)

    def _server_port(self, entry: Mapping[str, Any], deploy_module: bool) -> int:
        if not deploy_module:
            return 0
        port = entry.get(constants.PORT_KEY)
        if isinstance(port, int) and not isinstance(port, bool):
            self.allocator.reserve(port)
            return port
        return self.allocator.allocate_one()

    def _allocate_remaining_ports(self, spec: ModuleSpec) -> None:
        """Assign debug and sidecar ports for a deployed module."""
        if not spec.deploy_module:
            return

        if spec.deploy_sidecar:
            debug_port, sidecar_port, sidecar_debug_port = self.allocator.allocate(3)
            spec.module_debug_port = debug_port
            spec.sidecar_server_port = sidecar_port
            spec.sidecar_debug_port = sidecar_debug_port
        else:
            spec.module_debug_port = self.allocator.allocate_one()

    def _volumes(self, name: str, entry: Mapping[str, Any]) -> List[str]:
        raw = entry.get(constants.VOLUMES_KEY)
        if not isinstance(raw, list):
            return []

        volumes = []
        for value in raw:
            if not isinstance(value, str):
                continue
            volume = value
            if sys.platform == "win32" and constants.HOME_PLACEHOLDER in volume:
                volume = volume.replace(constants.HOME_PLACEHOLDER, str(home_config_dir()))
            if not os.path.exists(_bind_host_path(volume)):
                raise ConfigurationError(f"Volume {volume} for module {name} not found")
            volumes.append(volume)
        return volumes


def home_config_dir() -> Path:
    """Deployer config directory under the user's home, created on demand."""
    path = Path.home() / constants.CONFIG_HOME_DIR
    path.mkdir(parents=True, exist_ok=True)
    return path


def _bind_host_path(volume: str) -> str:
    """Host side of a host:container[:mode] bind, keeping a Windows drive letter."""
    parts = volume.split(":")
    if len(parts) > 2 and len(parts[0]) == 1:
        return f"{parts[0]}:{parts[1]}"
    return parts[0]


def _get_bool(entry: Mapping[str, Any], key: str, default: bool) -> bool:
    value = entry.get(key)
    return value if isinstance(value, bool) else default


def _get_str(entry: Mapping[str, Any], key: str, default: str) -> str:
    value = entry.get(key)
    return value if isinstance(value, str) else default


def _get_int(entry: Mapping[str, Any], key: str, default: int) -> int:
    value = entry.get(key)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return default


def _get_mapping(entry: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = entry.get(key)
    return dict(value) if isinstance(value, Mapping) else {}
