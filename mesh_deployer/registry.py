"""
Module registry access.

Reads install listings from the configured registries, derives module
identity from registry ids and resolves image references.
"""

import json
import logging
import os
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

import aiofiles
import httpx

from mesh_deployer import constants
from mesh_deployer.errors import SidecarVersionNotFound
from mesh_deployer.models.module import ModuleSpec, RegistryModule, RegistryModuleMetadata

logger = logging.getLogger(__name__)

_MODULE_ID_PATTERN = re.compile(constants.MODULE_ID_PATTERN)


def parse_module_id(module_id: str) -> Tuple[str, Optional[str]]:
    """
    Split a registry module id into name and version.

    Args:
        module_id: Id such as "mod-users-19.3.0" or "mod-orders-13.1.0-SNAPSHOT.1093"

    Returns:
        Tuple of (name, version); version is None when the id carries none
    """
    normalized = module_id.replace(":", "-")
    match = _MODULE_ID_PATTERN.match(normalized)
    if not match:
        return normalized, None

    name = match.group(1).rstrip("-")
    version = f"{match.group(2)}{match.group(3)}"
    return name, version or None


def sidecar_name_for(module_name: str) -> str:
    """Edge modules act as their own sidecar; everything else gets a -sc suffix."""
    if module_name.startswith(constants.EDGE_SIDECAR_PREFIX):
        return module_name
    return f"{module_name}{constants.SIDECAR_SUFFIX}"


def module_metadata(module_id: str) -> RegistryModuleMetadata:
    name, version = parse_module_id(module_id)
    return RegistryModuleMetadata(name=name, version=version, sidecar_name=sidecar_name_for(name))


class ImageNamespaceResolver:
    """Chooses the image namespace for a module version."""

    def __init__(
        self,
        release_namespace: str = constants.RELEASE_NAMESPACE,
        snapshot_namespace: str = constants.SNAPSHOT_NAMESPACE,
        override_env: str = constants.NAMESPACE_OVERRIDE_ENV,
    ):
        self.release_namespace = release_namespace
        self.snapshot_namespace = snapshot_namespace
        self.override_env = override_env

    @classmethod
    def from_config(cls, config) -> "ImageNamespaceResolver":
        return cls(
            release_namespace=config.registries.release_namespace,
            snapshot_namespace=config.registries.snapshot_namespace,
            override_env=config.registries.namespace_override_env,
        )

    def namespace(self, version: str) -> str:
        override = os.environ.get(self.override_env, "")
        if override:
            logger.info(f"Using registry namespace override {override}")
            return override
        if constants.SNAPSHOT_MARKER in version:
            return self.snapshot_namespace
        return self.release_namespace

    def is_registry_namespace(self, namespace: str) -> bool:
        """True for the release and snapshot namespaces, false for local or custom ones."""
        return namespace in (self.release_namespace, self.snapshot_namespace)

    def module_image(self, module_name: str, version: str) -> str:
        return f"{self.namespace(version)}/{module_name}:{version}"


def resolve_sidecar_image(
    config, registry_modules: Mapping[str, List[RegistryModule]], namespaces: ImageNamespaceResolver
) -> Tuple[str, bool]:
    """
    Resolve the sidecar image reference.

    Args:
        config: DeployerConfig with the sidecar section
        registry_modules: Registry listings searched for the sidecar release
        namespaces: Namespace resolver for registry images

    Returns:
        Tuple of (image reference, whether it must be pulled)

    Raises:
        SidecarVersionNotFound: Neither config nor any registry lists a version
    """
    sidecar = config.sidecar
    version = sidecar.version
    if not version:
        version = _find_sidecar_registry_version(registry_modules)
    if not version:
        raise SidecarVersionNotFound()

    if sidecar.local_image:
        return f"{sidecar.local_image}:{version}", False

    return f"{namespaces.namespace(version)}/{sidecar.image}:{version}", True


def _find_sidecar_registry_version(
    registry_modules: Mapping[str, List[RegistryModule]]
) -> Optional[str]:
    for modules in registry_modules.values():
        for module in modules:
            if module.metadata.name == constants.SIDECAR_PROJECT_NAME:
                return module.metadata.version
    return None


class ModuleRegistryClient:
    """Fetches module listings from registry install JSON documents."""

    def __init__(self, install_json_urls: Dict[str, str], timeout: float = 30.0):
        """
        Args:
            install_json_urls: Registry name -> install JSON URL
            timeout: HTTP timeout in seconds
        """
        self.install_json_urls = install_json_urls
        self._client = httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ModuleRegistryClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def get_modules(self) -> Dict[str, List[RegistryModule]]:
        """
        Fetch every configured registry listing.

        Returns:
            Registry name -> modules sorted by id

        Raises:
            httpx.HTTPError: A listing could not be fetched
        """
        listings: Dict[str, List[RegistryModule]] = {}
        for registry_name, url in self.install_json_urls.items():
            response = await self._client.get(url)
            response.raise_for_status()
            entries = response.json() if response.content else []

            modules = [
                self._to_registry_module(entry)
                for entry in entries
                if isinstance(entry, dict) and entry.get("id")
            ]
            modules = [module for module in modules if module is not None]
            modules.sort(key=lambda module: module.id)

            if modules:
                logger.info(f"Read registry {registry_name} with {len(modules)} modules")
            listings[registry_name] = modules

        return listings

    @staticmethod
    def _to_registry_module(entry: Dict[str, Any]) -> Optional[RegistryModule]:
        module_id = str(entry["id"])
        if module_id == constants.OKAPI_MODULE_ID:
            return None
        return RegistryModule(
            id=module_id, action=entry.get("action"), metadata=module_metadata(module_id)
        )

    @staticmethod
    async def read_local_descriptors(specs: Mapping[str, ModuleSpec]) -> Dict[str, Any]:
        """
        Read the local module descriptors referenced by resolved specs.

        Returns:
            Module name -> descriptor JSON, passed through untouched
        """
        descriptors: Dict[str, Any] = {}
        for name, spec in specs.items():
            if not spec.local_descriptor_path:
                continue
            async with aiofiles.open(spec.local_descriptor_path, "r") as f:
                content = await f.read()
            descriptors[name] = json.loads(content)
            logger.debug(f"Read local descriptor for {name} from {spec.local_descriptor_path}")
        return descriptors
