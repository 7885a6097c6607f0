"""
Shared fixtures for mesh deployer tests.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from mesh_deployer.config.settings import DeployerConfig
from mesh_deployer.deployment.containers import ContainerLifecycle
from mesh_deployer.deployment.readiness import ReadinessProbe
from mesh_deployer.models.containers import Containers, CreateResult
from mesh_deployer.models.module import RegistryModule
from mesh_deployer.port_manager import PortAllocator
from mesh_deployer.registry import module_metadata


def make_registry_module(module_id: str) -> RegistryModule:
    return RegistryModule(id=module_id, action="enable", metadata=module_metadata(module_id))


@pytest.fixture
def deployer_config():
    """Config with a small port pool and no readiness wait."""
    return DeployerConfig(
        profile="combined",
        ports={"start": 31000, "end": 31099, "check_system": False},
        readiness={"max_retries": 3, "wait_seconds": 0},
        timeouts={"listing": 5, "pull": 5, "deploy": 5, "undeploy": 5, "logs": 5},
        registries={"install_json_urls": {"folio": "https://registry.test/install.json"}},
        sidecar={"version": "3.0.0"},
        global_env={"DB_HOST": "postgres.eureka"},
        sidecar_env={"SIDECAR_FORWARD_UNKNOWN_REQUESTS": "true"},
        keycloak={"admin_client_id": "folio-backend-admin-client"},
    )


@pytest.fixture
def allocator(deployer_config):
    return PortAllocator.from_config(deployer_config)


@pytest.fixture
def mock_runtime():
    """Docker runtime mock that creates and starts containers successfully."""
    runtime = MagicMock()
    runtime.list_containers.return_value = []
    runtime.image_exists.return_value = True
    runtime.pull_image.return_value = iter([])
    runtime.create_container.return_value = CreateResult(id="container-1", warnings=[])
    return runtime


@pytest.fixture
def lifecycle(mock_runtime, deployer_config):
    return ContainerLifecycle(mock_runtime, deployer_config)


@pytest.fixture
def mock_probe():
    """HTTP probe that always reports a healthy module."""
    probe = MagicMock()
    probe.ping = AsyncMock(return_value=200)
    return probe


@pytest.fixture
def readiness(deployer_config, mock_probe):
    return ReadinessProbe.from_config(deployer_config, mock_probe)


@pytest.fixture
def registry_modules():
    return {
        "folio": [
            make_registry_module("edge-orders-3.1.0"),
            make_registry_module("folio-module-sidecar-3.0.0"),
            make_registry_module("mgr-tenants-2.0.0"),
            make_registry_module("mod-orders-13.1.0-SNAPSHOT.1093"),
            make_registry_module("mod-users-19.3.0"),
        ]
    }


@pytest.fixture
def make_containers(registry_modules):
    """Factory building a batch from resolved specs."""

    def _make(specs, management_only=False, vault_root_token="root-token"):
        return Containers(
            registry_modules=registry_modules,
            module_specs=specs,
            global_env=["DB_HOST=postgres.eureka"],
            sidecar_env=["SIDECAR_FORWARD_UNKNOWN_REQUESTS=true"],
            vault_root_token=vault_root_token,
            management_only=management_only,
        )

    return _make
