"""
Interception and upgrade flows for a single module and sidecar pair.

Every flow runs the same linear sequence: undeploy the existing pair,
assign ports, update discovery, redeploy and verify readiness. The first
failing step aborts the flow and its error reaches the caller unchanged.
"""

import logging
from typing import Optional, Tuple

from mesh_deployer.deployment.containers import ContainerLifecycle
from mesh_deployer.deployment.helpers import (
    build_resources,
    construct_url,
    next_module_version,
    pair_pattern,
    port_from_url,
)
from mesh_deployer.deployment.orchestrator import build_module_container, build_sidecar_container
from mesh_deployer.deployment.readiness import ReadinessProbe
from mesh_deployer.discovery import DiscoveryClient
from mesh_deployer.environment import EnvironmentComposer
from mesh_deployer.errors import ConfigurationError
from mesh_deployer.models.containers import Containers
from mesh_deployer.models.pair import ModulePair
from mesh_deployer.port_manager import PortAllocator
from mesh_deployer.registry import ImageNamespaceResolver, parse_module_id, resolve_sidecar_image

logger = logging.getLogger(__name__)

PAIR_PORT_COUNT = 4


class ModulePairing:
    """Redeploys one module and its sidecar under new ports or a new version."""

    def __init__(
        self,
        config,
        allocator: PortAllocator,
        lifecycle: ContainerLifecycle,
        readiness: ReadinessProbe,
        discovery: DiscoveryClient,
        composer: Optional[EnvironmentComposer] = None,
        namespaces: Optional[ImageNamespaceResolver] = None,
    ):
        self.config = config
        self.allocator = allocator
        self.lifecycle = lifecycle
        self.readiness = readiness
        self.discovery = discovery
        self.composer = composer or EnvironmentComposer(config)
        self.namespaces = namespaces or ImageNamespaceResolver.from_config(config)

    def build_pair(
        self,
        containers: Containers,
        module_id: str,
        module_url: Optional[str] = None,
        sidecar_url: Optional[str] = None,
        use_gateway: bool = False,
        namespace: Optional[str] = None,
    ) -> ModulePair:
        """
        Create the pair for a deployed module.

        Args:
            containers: Batch the module was deployed with
            module_id: Registry module id
            module_url: Module location override, a full URL or a bare port
            sidecar_url: Sidecar location override, a full URL or a bare port
            use_gateway: Expand both URLs against the gateway URL
            namespace: Image namespace used by an upgrade

        Raises:
            ConfigurationError: The module is not listed or not deployable
        """
        module_name, _ = parse_module_id(module_id)
        registry_module = containers.find_registry_module(module_name)
        if registry_module is None:
            raise ConfigurationError(f"Module {module_name} is not listed in any registry")

        spec = containers.module_specs.get(module_name)
        if spec is None or not spec.deploy_module:
            raise ConfigurationError(f"Module {module_name} is not configured for deployment")

        if use_gateway:
            if module_url:
                module_url = construct_url(module_url, self.config.gateway_url)
            if sidecar_url:
                sidecar_url = construct_url(sidecar_url, self.config.gateway_url)

        return ModulePair(
            id=module_id,
            module_name=module_name,
            module_url=module_url or None,
            sidecar_url=sidecar_url or None,
            namespace=namespace,
            spec=spec.model_copy(deep=True),
            registry_module=registry_module,
            containers=containers,
        )

    async def intercept_default(self, pair: ModulePair, restore: bool = False) -> ModulePair:
        """
        Redeploy the module and its sidecar in the mesh under fresh ports.

        Args:
            pair: Pair to redeploy; its URL overrides are cleared
            restore: Register the default in-mesh location with discovery
        """
        logger.info(f"Redeploying module {pair.module_name} and its sidecar with default settings")
        pair.clear_urls()

        await self._undeploy_pair(pair)
        self._assign_pair_ports(pair)
        await self.discovery.register_location(pair.id, restore=restore)
        await self._deploy_module(pair)
        await self._deploy_sidecar(pair)
        await self._verify(pair)
        return pair

    async def intercept_custom_sidecar(self, pair: ModulePair) -> ModulePair:
        """
        Route the module through a sidecar running at a custom location.

        Only the sidecar is redeployed. Its server port comes from the sidecar
        URL and the module port from the module URL.

        Raises:
            ConfigurationError: Either URL is missing
            ValueError: A URL does not end in a port
        """
        if not pair.module_url or not pair.sidecar_url:
            raise ConfigurationError(
                f"Intercepting {pair.module_name} requires both a module and a sidecar URL"
            )

        logger.info(
            f"Intercepting module {pair.module_name}: "
            f"module at {pair.module_url}, sidecar at {pair.sidecar_url}"
        )
        module_port = port_from_url(pair.module_url)
        sidecar_port = port_from_url(pair.sidecar_url)
        await self._undeploy_pair(pair)

        spec = pair.spec
        spec.module_server_port = module_port
        spec.module_debug_port = 0
        spec.sidecar_server_port = sidecar_port
        self.allocator.reserve(module_port)
        self.allocator.reserve(sidecar_port)
        spec.sidecar_debug_port = self.allocator.allocate_one()

        await self.discovery.register_location(pair.id, sidecar_url=pair.sidecar_url)
        await self._deploy_sidecar(pair, pair.module_url, pair.sidecar_url)
        await self._verify(pair)
        return pair

    async def upgrade(
        self,
        pair: ModulePair,
        new_version: Optional[str] = None,
        namespace: Optional[str] = None,
    ) -> ModulePair:
        """
        Redeploy the pair with a new module version.

        Args:
            pair: Pair to upgrade
            new_version: Target version; derived from the current one when omitted
            namespace: Image namespace; the pair's, then the local namespace

        Raises:
            ConfigurationError: No version is known to derive the new one from
            ValueError: The current version cannot be incremented
        """
        version = new_version or self.next_version(pair)
        pair.namespace = namespace or pair.namespace or self.config.registries.local_namespace

        old_id = pair.id
        pair.id = f"{pair.module_name}-{version}"
        pair.spec.version = version
        metadata = pair.registry_module.metadata.model_copy(update={"version": version})
        pair.registry_module = pair.registry_module.model_copy(
            update={"id": pair.id, "metadata": metadata}
        )
        logger.info(f"Upgrading module {old_id} to {pair.id} from namespace {pair.namespace}")

        pair.clear_urls()
        await self._undeploy_pair(pair)
        self._assign_pair_ports(pair)
        await self.discovery.register_location(pair.id)
        await self._deploy_module(pair)
        await self._deploy_sidecar(pair)
        await self._verify(pair)
        return pair

    def next_version(self, pair: ModulePair) -> str:
        _, current = parse_module_id(pair.id)
        current = current or pair.version
        if not current:
            raise ConfigurationError(f"No version known for module {pair.module_name}")
        return next_module_version(current)

    def module_image(self, pair: ModulePair) -> Tuple[str, bool]:
        """
        Image reference for the pair's module and whether to pull it.

        Namespaces outside the release and snapshot registries refer to
        locally built images, which are never pulled.
        """
        version = pair.version or ""
        if pair.namespace and not self.namespaces.is_registry_namespace(pair.namespace):
            return f"{pair.namespace}/{pair.module_name}:{version}", False

        image = self.namespaces.module_image(pair.module_name, version)
        return image, not pair.spec.local_descriptor_path

    async def _undeploy_pair(self, pair: ModulePair) -> None:
        """Remove the running pair and return its host ports to the pool."""
        logger.info(f"Undeploying module and sidecar pair of {pair.module_name}")
        pattern = pair_pattern(pair.module_name, self.config.profile, self.config.container_prefix)
        await self.lifecycle.undeploy_by_pattern(pattern)
        self.allocator.release(pair.spec.host_ports)

    def _assign_pair_ports(self, pair: ModulePair) -> None:
        ports = self.allocator.allocate(PAIR_PORT_COUNT)
        spec = pair.spec
        (
            spec.module_server_port,
            spec.module_debug_port,
            spec.sidecar_server_port,
            spec.sidecar_debug_port,
        ) = ports
        logger.debug(f"Assigned ports {ports} to {pair.module_name}")

    async def _deploy_module(self, pair: ModulePair) -> None:
        image, pull = self.module_image(pair)
        logger.info(f"Using module image {image}")

        metadata = pair.registry_module.metadata
        env = self.composer.compose_module(
            pair.spec, metadata, pair.containers.global_env, pair.containers.vault_root_token
        )
        container = build_module_container(self.config, pair.spec, pair.module_name, image, env)
        await self.lifecycle.deploy(container.model_copy(update={"pull_image": pull}))

    async def _deploy_sidecar(
        self,
        pair: ModulePair,
        module_url: Optional[str] = None,
        sidecar_url: Optional[str] = None,
    ) -> None:
        image, pull = resolve_sidecar_image(
            self.config, pair.containers.registry_modules, self.namespaces
        )
        env = self.composer.compose_sidecar(
            pair.spec,
            pair.registry_module.metadata,
            pair.containers.sidecar_env,
            pair.containers.vault_root_token,
            module_url,
            sidecar_url,
        )
        resources = build_resources(self.config.sidecar.resources, is_module=False)
        container = build_sidecar_container(
            self.config, pair.spec, pair.sidecar_name, image, env, resources, pull_image=pull
        )
        await self.lifecycle.deploy(container)

    async def _verify(self, pair: ModulePair) -> None:
        logger.info(f"Waiting for module {pair.module_name} and its sidecar to initialize")
        await self.readiness.check_pair(
            pair.module_name,
            pair.spec.module_server_port,
            pair.sidecar_name,
            pair.spec.sidecar_server_port,
        )
