"""
Batch deployment of modules and their sidecars.

Modules are deployed one after another; each module's sidecar is deployed in
its own task as soon as the module is up. The first synchronous failure
aborts the batch. Containers that were already started keep running.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Set, Tuple

from mesh_deployer.deployment.containers import ContainerLifecycle
from mesh_deployer.deployment.helpers import build_resources
from mesh_deployer.deployment.readiness import ReadinessProbe
from mesh_deployer.environment import EnvironmentComposer
from mesh_deployer.errors import DeployerError, SidecarDeployFailed
from mesh_deployer.models.containers import Containers, ContainerSpec
from mesh_deployer.models.module import ModuleSpec, RegistryModule, ResourceSpec
from mesh_deployer.module_resolver import ModuleSpecResolver, is_management_module
from mesh_deployer.registry import (
    ImageNamespaceResolver,
    ModuleRegistryClient,
    resolve_sidecar_image,
)

logger = logging.getLogger(__name__)


def build_module_container(
    config, spec: ModuleSpec, name: str, image: str, env: List[str]
) -> ContainerSpec:
    """Container spec for a module; the image is pulled unless a local descriptor is used."""
    return ContainerSpec(
        name=name,
        image=image,
        pull_image=not spec.local_descriptor_path,
        env=env,
        server_port=spec.module_server_port,
        debug_port=spec.module_debug_port,
        private_server_port=spec.private_port,
        private_debug_port=config.ports.private_debug_port,
        resources=build_resources(spec.resources, is_module=True),
        volumes=spec.volumes,
    )


def build_sidecar_container(
    config,
    spec: ModuleSpec,
    sidecar_name: str,
    image: str,
    env: List[str],
    resources: ResourceSpec,
    pull_image: bool = False,
) -> ContainerSpec:
    return ContainerSpec(
        name=sidecar_name,
        image=image,
        pull_image=pull_image,
        env=env,
        server_port=spec.sidecar_server_port,
        debug_port=spec.sidecar_debug_port,
        private_server_port=spec.private_port,
        private_debug_port=config.ports.private_debug_port,
        resources=resources,
        command=config.sidecar.command,
    )


class DeploymentOrchestrator:
    """Deploys a batch of modules with concurrent sidecar fan-out."""

    def __init__(
        self,
        config,
        lifecycle: ContainerLifecycle,
        composer: Optional[EnvironmentComposer] = None,
        namespaces: Optional[ImageNamespaceResolver] = None,
        readiness: Optional[ReadinessProbe] = None,
    ):
        """
        Args:
            config: DeployerConfig
            lifecycle: Container lifecycle operations
            composer: Environment composer, built from config when omitted
            namespaces: Image namespace resolver, built from config when omitted
            readiness: Readiness probe used by verify_readiness
        """
        self.config = config
        self.lifecycle = lifecycle
        self.composer = composer or EnvironmentComposer(config)
        self.namespaces = namespaces or ImageNamespaceResolver.from_config(config)
        self.readiness = readiness

    def module_image(self, spec: ModuleSpec, module: RegistryModule) -> str:
        version = spec.version or module.metadata.version or ""
        return self.namespaces.module_image(module.metadata.name, version)

    async def deploy_modules(
        self,
        containers: Containers,
        sidecar_image: str = "",
        sidecar_resources: Optional[ResourceSpec] = None,
        pull_sidecar: bool = False,
    ) -> Dict[str, int]:
        """
        Deploy every selected module of the batch and fan out its sidecar.

        Args:
            containers: Batch snapshot
            sidecar_image: Sidecar image reference; empty disables sidecars
            sidecar_resources: Sidecar resources, sidecar defaults when omitted
            pull_sidecar: Pull the sidecar image once before the first sidecar

        Returns:
            Module name -> host server port

        Raises:
            DeployerError: The first module deploy failure, or the first
                sidecar failure once all sidecar tasks have finished
        """
        if sidecar_resources is None:
            sidecar_resources = build_resources(self.config.sidecar.resources, is_module=False)

        deployed: Dict[str, int] = {}
        batch_size = sum(len(modules) for modules in containers.registry_modules.values())
        errors: "asyncio.Queue[Exception]" = asyncio.Queue(maxsize=max(batch_size, 1))
        sidecar_tasks: Set[asyncio.Task] = set()
        sidecar_pulled = False

        for registry_name, modules in containers.registry_modules.items():
            if modules:
                logger.info(f"Deploying modules from registry {registry_name}")

            for module in modules:
                name = module.metadata.name
                if is_management_module(name) != containers.management_only:
                    continue

                spec = containers.module_specs.get(name)
                if spec is None or not spec.deploy_module:
                    continue

                env = self.composer.compose_module(
                    spec, module.metadata, containers.global_env, containers.vault_root_token
                )
                container = build_module_container(
                    self.config, spec, name, self.module_image(spec, module), env
                )

                try:
                    await self.lifecycle.deploy(container)
                except Exception:
                    logger.error(f"Deployment of {name} failed, aborting batch without rollback")
                    await self._wait_sidecars(sidecar_tasks)
                    raise

                deployed[name] = spec.module_server_port

                if spec.deploy_sidecar and sidecar_image:
                    if pull_sidecar and not sidecar_pulled:
                        try:
                            await self.lifecycle.pull(sidecar_image)
                        except Exception:
                            await self._wait_sidecars(sidecar_tasks)
                            raise
                        sidecar_pulled = True

                    task = asyncio.create_task(
                        self._deploy_sidecar(
                            containers, module, spec, sidecar_image, sidecar_resources, errors
                        )
                    )
                    sidecar_tasks.add(task)

        await self._wait_sidecars(sidecar_tasks)

        if not errors.empty():
            raise errors.get_nowait()

        return deployed

    async def _wait_sidecars(self, tasks: Set[asyncio.Task]) -> None:
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _deploy_sidecar(
        self,
        containers: Containers,
        module: RegistryModule,
        spec: ModuleSpec,
        image: str,
        resources: ResourceSpec,
        errors: "asyncio.Queue[Exception]",
    ) -> None:
        sidecar_name = module.metadata.sidecar_name
        try:
            env = self.composer.compose_sidecar(
                spec, module.metadata, containers.sidecar_env, containers.vault_root_token
            )
            container = build_sidecar_container(
                self.config, spec, sidecar_name, image, env, resources
            )
            await self.lifecycle.deploy(container)
        except Exception as e:
            error = SidecarDeployFailed(sidecar_name, e)
            logger.error(f"Failed to deploy sidecar {sidecar_name} of module {module.name}: {e}")
            try:
                errors.put_nowait(error)
            except asyncio.QueueFull:
                logger.debug(f"Dropped failure report for sidecar {sidecar_name}")

    async def verify_readiness(self, containers: Containers, deployed: Dict[str, int]) -> None:
        """Check every deployed module and its sidecar concurrently."""
        if self.readiness is None:
            raise DeployerError("No readiness probe configured")

        targets: List[Tuple[str, int]] = []
        for name, port in deployed.items():
            targets.append((name, port))
            spec = containers.module_specs[name]
            module = containers.find_registry_module(name)
            if spec.deploy_sidecar and module is not None:
                targets.append((module.metadata.sidecar_name, spec.sidecar_server_port))

        if targets:
            await self.readiness.check_all(targets)

    async def run(
        self,
        resolver: ModuleSpecResolver,
        registry: ModuleRegistryClient,
        management_only: bool = False,
        vault_root_token: str = "",
    ) -> Dict[str, int]:
        """
        Resolve, deploy and verify one batch from the current configuration.

        Returns:
            Module name -> host server port
        """
        registry_modules = await registry.get_modules()
        specs = resolver.resolve(management_only=management_only)

        containers = Containers(
            registry_modules=registry_modules,
            module_specs=specs,
            global_env=self.config.global_env_list(),
            sidecar_env=self.config.sidecar_env_list(),
            vault_root_token=vault_root_token,
            management_only=management_only,
        )

        sidecar_image, pull_sidecar = "", False
        if not management_only:
            sidecar_image, pull_sidecar = resolve_sidecar_image(
                self.config, registry_modules, self.namespaces
            )

        deployed = await self.deploy_modules(
            containers, sidecar_image, pull_sidecar=pull_sidecar
        )
        logger.info(f"Deployed {len(deployed)} modules")

        if self.readiness is not None:
            await self.verify_readiness(containers, deployed)
        return deployed
