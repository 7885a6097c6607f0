"""
Thin synchronous wrapper around the docker SDK.

ContainerLifecycle runs these calls in an executor with per-operation
timeouts; nothing here blocks an event loop directly.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

import docker
from docker.errors import APIError, ImageNotFound

from mesh_deployer.models.containers import ContainerSpec, ContainerSummary, CreateResult

logger = logging.getLogger(__name__)

MIB = 1024 * 1024
HTTP_CONFLICT = 409


def mib_to_bytes(value: int) -> int:
    """Convert MiB to bytes; non-positive values (e.g. -1 for unlimited) pass through."""
    return value * MIB if value > 0 else value


class DockerRuntime:
    """Container runtime backed by the local docker daemon."""

    def __init__(
        self,
        client: Optional[docker.DockerClient] = None,
        network: str = "eureka",
        network_alias: str = "eureka-net",
        host_ip: str = "0.0.0.0",
    ):
        if client is None:
            client = docker.from_env()
            logger.debug("Connected to Docker daemon")
        self.client = client
        self.network = network
        self.network_alias = network_alias
        self.host_ip = host_ip

    @classmethod
    def from_config(cls, config, client: Optional[docker.DockerClient] = None) -> "DockerRuntime":
        return cls(
            client=client,
            network=config.network.name,
            network_alias=config.network.alias,
            host_ip=config.network.host_ip,
        )

    @property
    def api(self) -> docker.APIClient:
        return self.client.api

    def list_containers(self, name_filter: str) -> List[ContainerSummary]:
        """List all containers, running or not, whose name matches the filter."""
        raw = self.api.containers(all=True, filters={"name": name_filter})
        return [
            ContainerSummary(
                id=item["Id"],
                names=item.get("Names") or [],
                image=item.get("Image", ""),
                state=item.get("State", ""),
            )
            for item in raw
        ]

    def image_exists(self, image: str) -> bool:
        try:
            self.api.inspect_image(image)
            return True
        except ImageNotFound:
            return False

    def pull_image(self, image: str) -> Iterator[Dict[str, Any]]:
        """Stream decoded pull progress events."""
        return self.api.pull(image, stream=True, decode=True)

    def create_container(self, name: str, spec: ContainerSpec) -> CreateResult:
        resources = spec.resources
        host_config = self.api.create_host_config(
            port_bindings={
                spec.private_server_port: (self.host_ip, spec.server_port),
                spec.private_debug_port: (self.host_ip, spec.debug_port),
            },
            restart_policy={"Name": "always"},
            binds=spec.volumes or None,
            cpu_count=resources.cpu_count,
            mem_reservation=mib_to_bytes(resources.memory_reservation),
            mem_limit=mib_to_bytes(resources.memory),
            memswap_limit=mib_to_bytes(resources.memory_swap),
            oom_kill_disable=resources.oom_kill_disable,
        )
        networking_config = self.api.create_networking_config(
            {self.network: self.api.create_endpoint_config(aliases=[self.network_alias])}
        )

        response = self.api.create_container(
            image=spec.image,
            name=name,
            hostname=spec.name,
            environment=spec.env,
            ports=[spec.private_server_port, spec.private_debug_port],
            command=spec.command or None,
            host_config=host_config,
            networking_config=networking_config,
        )
        return CreateResult(id=response["Id"], warnings=response.get("Warnings") or [])

    def start_container(self, container_id: str) -> None:
        self.api.start(container_id)

    def stop_container(self, container_id: str) -> None:
        """Kill the container outright; a container that is not running is left as is."""
        try:
            self.api.kill(container_id, signal="SIGKILL")
        except APIError as e:
            if e.status_code != HTTP_CONFLICT:
                raise
            logger.debug(f"Container {container_id} is not running: {e.explanation}")

    def remove_container(self, container_id: str) -> None:
        self.api.remove_container(container_id, v=True, force=True)

    def disconnect_network(self, container_id: str) -> None:
        self.api.disconnect_container_from_network(container_id, self.network, force=False)

    def open_log_stream(self, container: str):
        """
        Open the raw multiplexed log stream of a container.

        Returns a file-like object; each frame is an 8-byte header whose last
        four bytes hold the big-endian payload length.
        """
        # APIClient.logs strips the frame headers, so read the raw response
        url = self.api._url("/containers/{0}/logs", container)
        response = self.api._get(url, params={"stdout": 1, "stderr": 1}, stream=True)
        self.api._raise_for_status(response)
        return response.raw
