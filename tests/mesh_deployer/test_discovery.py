"""
Tests for discovery registration.
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from mesh_deployer.discovery import DiscoveryClient, default_location
from mesh_deployer.errors import DiscoveryRegistrationFailed


@pytest.fixture
def mock_http():
    with patch("mesh_deployer.discovery.httpx.AsyncClient") as mock_client_class:
        mock_client = AsyncMock()
        mock_client.put.return_value = Mock(status_code=204)
        mock_client_class.return_value = mock_client
        yield mock_client


class TestDefaultLocation:
    """Test in-mesh sidecar addresses."""

    def test_module_sidecar(self):
        assert default_location("mod-users", 8081) == "http://mod-users-sc.eureka:8081"

    def test_edge_module(self):
        assert default_location("edge-orders", 8081) == "http://edge-orders.eureka:8081"


class TestDiscoveryClient:
    """Test DiscoveryClient functionality."""

    @pytest.mark.asyncio
    async def test_register_default_location(self, mock_http):
        client = DiscoveryClient()

        location = await client.register_location("mod-users-19.3.0")

        assert location == "http://mod-users-sc.eureka:8081"
        mock_http.put.assert_awaited_once_with(
            "http://localhost:8000/modules/mod-users-19.3.0/discovery",
            json={
                "id": "mod-users-19.3.0",
                "name": "mod-users",
                "version": "19.3.0",
                "location": "http://mod-users-sc.eureka:8081",
            },
        )

    @pytest.mark.asyncio
    async def test_register_override(self, mock_http):
        client = DiscoveryClient()

        location = await client.register_location(
            "mod-users-19.3.0", sidecar_url="http://host.docker.internal:37002"
        )

        assert location == "http://host.docker.internal:37002"

    @pytest.mark.asyncio
    async def test_restore_ignores_override(self, mock_http):
        client = DiscoveryClient()

        location = await client.register_location(
            "mod-users-19.3.0", sidecar_url="http://host.docker.internal:37002", restore=True
        )

        assert location == "http://mod-users-sc.eureka:8081"

    @pytest.mark.asyncio
    async def test_rejected_registration(self, mock_http):
        mock_http.put.return_value = Mock(status_code=404)
        client = DiscoveryClient()

        with pytest.raises(DiscoveryRegistrationFailed) as exc_info:
            await client.register_location("mod-users-19.3.0")

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_from_config(self, mock_http, deployer_config):
        deployer_config.gateway_url = "http://kong.local"
        deployer_config.network.mesh_domain = "mesh"
        client = DiscoveryClient.from_config(deployer_config)

        await client.register_location("edge-orders-3.1.0")

        url = mock_http.put.await_args.args[0]
        assert url == "http://kong.local:8000/modules/edge-orders-3.1.0/discovery"
        assert mock_http.put.await_args.kwargs["json"]["location"] == "http://edge-orders.mesh:8081"

        await client.close()
        mock_http.aclose.assert_awaited_once()
