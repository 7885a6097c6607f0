"""
Container lifecycle operations for module deployments.

Wraps the synchronous DockerRuntime: every call runs in the default executor
and is bounded by its own timeout from the deployer configuration.
"""

import asyncio
import functools
import logging
import struct
from typing import Any, BinaryIO, Callable, List, Optional

from mesh_deployer import constants
from mesh_deployer.deployment.helpers import (
    container_name,
    management_pattern,
    profile_pattern,
    text_after_last_colon,
)
from mesh_deployer.docker_runtime import DockerRuntime
from mesh_deployer.errors import ContainerRuntimeError, ModulePullFailed, RuntimeTimeout
from mesh_deployer.logging_config import log_module_operation
from mesh_deployer.models.containers import ContainerSpec, ContainerSummary

logger = logging.getLogger(__name__)


class ContainerLifecycle:
    """
    Pull, deploy, list and undeploy containers.

    Provides the lifecycle primitives used by the orchestrator and the
    module pairing flows.
    """

    def __init__(self, runtime, config) -> None:
        """
        Args:
            runtime: DockerRuntime (or compatible) performing the blocking calls
            config: DeployerConfig supplying profile, prefix and timeouts
        """
        self.runtime = runtime
        self.config = config

    @classmethod
    def from_config(cls, config, client=None) -> "ContainerLifecycle":
        """Build lifecycle operations backed by the local docker daemon."""
        return cls(DockerRuntime.from_config(config, client=client), config)

    @property
    def timeouts(self):
        return self.config.timeouts

    def container_name(self, name: str) -> str:
        return container_name(name, self.config.profile, self.config.container_prefix)

    async def _call(
        self, operation: str, target: str, timeout: float, func: Callable[..., Any], *args: Any
    ) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, functools.partial(func, *args)), timeout=timeout
            )
        except asyncio.TimeoutError:
            raise RuntimeTimeout(operation, target, timeout) from None

    async def list_by_filter(self, name_filter: str) -> List[ContainerSummary]:
        """List containers whose name matches the filter."""
        return await self._call(
            "list", name_filter, self.timeouts.listing, self.runtime.list_containers, name_filter
        )

    async def list_profile_containers(self, profile: Optional[str] = None) -> List[ContainerSummary]:
        pattern = profile_pattern(profile or self.config.profile, self.config.container_prefix)
        return await self.list_by_filter(pattern)

    async def list_management_containers(self) -> List[ContainerSummary]:
        return await self.list_by_filter(management_pattern(self.config.container_prefix))

    async def pull(self, image: str) -> None:
        """
        Pull an image unless it is already present locally.

        Raises:
            ModulePullFailed: A progress event reported an error
            RuntimeTimeout: The pull did not finish in time
        """
        exists = await self._call(
            "inspect", image, self.timeouts.listing, self.runtime.image_exists, image
        )
        if exists:
            logger.debug(f"Image {image} already exists locally")
            return

        logger.info(f"Pulling image {image}")
        await self._call("pull", image, self.timeouts.pull, self._pull_sync, image)
        log_module_operation("pull", image)

    def _pull_sync(self, image: str) -> None:
        for event in self.runtime.pull_image(image):
            error = event.get("error")
            if error:
                raise ModulePullFailed(image, str(error))

            progress = event.get("progressDetail") or {}
            logger.debug(
                f"Pulling {image}: {event.get('status', '')} "
                f"{progress.get('current', 0)}/{progress.get('total', 0)}"
            )

    async def deploy(self, spec: ContainerSpec) -> str:
        """
        Pull (when requested), create and start one container.

        Returns:
            Id of the started container
        """
        if spec.pull_image:
            await self.pull(spec.image)

        name = self.container_name(spec.name)
        result = await self._call(
            "create", name, self.timeouts.deploy, self.runtime.create_container, name, spec
        )
        if result.warnings:
            logger.warning(f"Container {name} created with warnings: {result.warnings}")

        await self._call("start", name, self.timeouts.deploy, self.runtime.start_container, result.id)

        logger.info(f"Deployed module {name}")
        log_module_operation(
            "deploy",
            name,
            {"image": spec.image, "port": spec.server_port, "debug_port": spec.debug_port},
        )
        return result.id

    async def undeploy_by_pattern(self, pattern: str) -> List[str]:
        """
        Stop and remove every container matching the name pattern.

        A network disconnect failure is only logged and a remove failure after a
        successful stop is logged and skipped. A stop failure aborts the call.

        Returns:
            Names of the undeployed containers
        """
        containers = await self.list_by_filter(pattern)
        undeployed = []
        for summary in containers:
            await self._undeploy_one(summary)
            undeployed.append(summary.name)
        return undeployed

    async def _undeploy_one(self, summary: ContainerSummary) -> None:
        name = summary.name
        timeout = self.timeouts.undeploy

        try:
            await self._call(
                "disconnect", name, timeout, self.runtime.disconnect_network, summary.id
            )
        except Exception as e:
            logger.warning(f"Module {name} network disconnected with warnings: {e}")

        await self._call("stop", name, timeout, self.runtime.stop_container, summary.id)

        try:
            await self._call("remove", name, timeout, self.runtime.remove_container, summary.id)
        except Exception as e:
            logger.error(f"Failed to remove container {name}: {e}")

        logger.info(f"Undeployed module {name}")
        log_module_operation("undeploy", name)

    async def read_startup_secret(
        self, container: str, marker: str = constants.VAULT_ROOT_TOKEN_MARKER
    ) -> str:
        """
        Scan a container's boot logs for a one-time secret.

        Args:
            container: Container name or id
            marker: Text identifying the log line that carries the secret

        Returns:
            Text after the last colon of the first matching line
        """
        return await self._call(
            "logs", container, self.timeouts.logs, self._read_secret_sync, container, marker
        )

    def _read_secret_sync(self, container: str, marker: str) -> str:
        stream = self.runtime.open_log_stream(container)
        try:
            line = find_log_line(stream, marker)
        finally:
            close = getattr(stream, "close", None)
            if close:
                close()

        if line is None:
            raise ContainerRuntimeError("logs", container, f"no log line contains '{marker}'")
        return text_after_last_colon(line)


def find_log_line(stream: BinaryIO, marker: str) -> Optional[str]:
    """
    Return the first multiplexed log frame whose payload contains the marker.

    Each frame is an 8-byte header carrying the payload length as a
    big-endian uint32 at offset 4, followed by the payload.
    """
    while True:
        header = _read_exact(stream, constants.DOCKER_LOG_HEADER_SIZE)
        if len(header) < constants.DOCKER_LOG_HEADER_SIZE:
            return None

        (size,) = struct.unpack(">I", header[constants.DOCKER_LOG_SIZE_OFFSET :])
        payload = _read_exact(stream, size)
        line = payload.decode("utf-8", errors="replace")
        if marker in line:
            return line
        if len(payload) < size:
            return None


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)
