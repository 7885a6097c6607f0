"""
Discovery registry client.

Tells the platform gateway where a module's sidecar can now be reached.
"""

import logging
from typing import Optional

import httpx

from mesh_deployer.errors import DiscoveryRegistrationFailed
from mesh_deployer.registry import parse_module_id, sidecar_name_for

logger = logging.getLogger(__name__)


def default_location(module_name: str, private_port: int, mesh_domain: str = "eureka") -> str:
    """In-mesh address of a module's sidecar (the module itself for edge modules)."""
    return f"http://{sidecar_name_for(module_name)}.{mesh_domain}:{private_port}"


class DiscoveryClient:
    """Registers module locations with the gateway's discovery API."""

    def __init__(
        self,
        gateway_url: str = "http://localhost",
        gateway_port: int = 8000,
        private_port: int = 8081,
        mesh_domain: str = "eureka",
        timeout: float = 30.0,
    ):
        self.base_url = f"{gateway_url}:{gateway_port}"
        self.private_port = private_port
        self.mesh_domain = mesh_domain
        self._client = httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_config(cls, config) -> "DiscoveryClient":
        return cls(
            gateway_url=config.gateway_url,
            gateway_port=config.gateway_port,
            private_port=config.ports.private_server_port,
            mesh_domain=config.network.mesh_domain,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def register_location(
        self, module_id: str, sidecar_url: Optional[str] = None, restore: bool = False
    ) -> str:
        """
        Point the discovery entry of a module at a new location.

        Args:
            module_id: Registry module id, e.g. mod-users-19.3.0
            sidecar_url: Override location; None registers the in-mesh default
            restore: Ignore any override and register the in-mesh default

        Returns:
            The location that was registered

        Raises:
            DiscoveryRegistrationFailed: The gateway answered with an error status
            httpx.HTTPError: On transport failures
        """
        name, version = parse_module_id(module_id)
        location = sidecar_url
        if not location or restore:
            location = default_location(name, self.private_port, self.mesh_domain)

        payload = {"id": module_id, "name": name, "version": version, "location": location}
        response = await self._client.put(
            f"{self.base_url}/modules/{module_id}/discovery", json=payload
        )
        if response.status_code >= 400:
            raise DiscoveryRegistrationFailed(module_id, response.status_code)

        logger.info(f"Updated discovery of {name} to {location}")
        return location
