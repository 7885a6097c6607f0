"""
Tests for the docker SDK wrapper.
"""

from unittest.mock import MagicMock, Mock

import pytest
from docker.errors import APIError, ImageNotFound

from mesh_deployer.docker_runtime import DockerRuntime, mib_to_bytes
from mesh_deployer.models.containers import ContainerSpec
from mesh_deployer.models.module import ResourceSpec


@pytest.fixture
def docker_client():
    client = MagicMock()
    client.api.create_host_config.return_value = {"host": "config"}
    client.api.create_endpoint_config.return_value = {"endpoint": "config"}
    client.api.create_networking_config.return_value = {"networking": "config"}
    client.api.create_container.return_value = {"Id": "abc123", "Warnings": None}
    return client


@pytest.fixture
def runtime(docker_client):
    return DockerRuntime(client=docker_client, network="eureka", network_alias="eureka-net")


class TestDockerRuntime:
    """Test DockerRuntime functionality."""

    def test_mib_to_bytes(self):
        assert mib_to_bytes(750) == 750 * 1024 * 1024
        assert mib_to_bytes(-1) == -1
        assert mib_to_bytes(0) == 0

    def test_defaults_to_environment_client(self, mock_docker_client):
        runtime = DockerRuntime()

        assert runtime.client is mock_docker_client

    def test_list_containers(self, runtime, docker_client):
        docker_client.api.containers.return_value = [
            {
                "Id": "abc123",
                "Names": ["/eureka-combined-mod-users"],
                "Image": "folioorg/mod-users:19.3.0",
                "State": "running",
            }
        ]

        result = runtime.list_containers("^eureka-combined-")

        docker_client.api.containers.assert_called_once_with(
            all=True, filters={"name": "^eureka-combined-"}
        )
        assert result[0].id == "abc123"
        assert result[0].name == "eureka-combined-mod-users"

    def test_image_exists(self, runtime, docker_client):
        assert runtime.image_exists("folioorg/mod-users:19.3.0") is True

        docker_client.api.inspect_image.side_effect = ImageNotFound("no such image")
        assert runtime.image_exists("folioorg/mod-users:19.3.0") is False

    def test_pull_image_streams_events(self, runtime, docker_client):
        runtime.pull_image("folioorg/mod-users:19.3.0")

        docker_client.api.pull.assert_called_once_with(
            "folioorg/mod-users:19.3.0", stream=True, decode=True
        )

    def test_create_container(self, runtime, docker_client):
        spec = ContainerSpec(
            name="mod-users",
            image="folioorg/mod-users:19.3.0",
            env=["DB_HOST=postgres.eureka"],
            server_port=31000,
            debug_port=31001,
            private_server_port=8081,
            private_debug_port=5005,
            resources=ResourceSpec(memory=1024, oom_kill_disable=True),
            volumes=["/opt/descriptors:/data"],
        )

        result = runtime.create_container("eureka-combined-mod-users", spec)

        assert result.id == "abc123"
        assert result.warnings == []

        host_kwargs = docker_client.api.create_host_config.call_args.kwargs
        assert host_kwargs["port_bindings"] == {8081: ("0.0.0.0", 31000), 5005: ("0.0.0.0", 31001)}
        assert host_kwargs["restart_policy"] == {"Name": "always"}
        assert host_kwargs["binds"] == ["/opt/descriptors:/data"]
        assert host_kwargs["mem_limit"] == 1024 * 1024 * 1024
        assert host_kwargs["memswap_limit"] == -1
        assert host_kwargs["oom_kill_disable"] is True

        docker_client.api.create_endpoint_config.assert_called_once_with(aliases=["eureka-net"])
        docker_client.api.create_networking_config.assert_called_once_with(
            {"eureka": {"endpoint": "config"}}
        )

        create_kwargs = docker_client.api.create_container.call_args.kwargs
        assert create_kwargs["name"] == "eureka-combined-mod-users"
        assert create_kwargs["hostname"] == "mod-users"
        assert create_kwargs["environment"] == ["DB_HOST=postgres.eureka"]
        assert create_kwargs["ports"] == [8081, 5005]
        assert create_kwargs["command"] is None
        assert create_kwargs["host_config"] == {"host": "config"}

    def test_stop_remove_disconnect(self, runtime, docker_client):
        runtime.disconnect_network("abc123")
        runtime.stop_container("abc123")
        runtime.remove_container("abc123")

        docker_client.api.disconnect_container_from_network.assert_called_once_with(
            "abc123", "eureka", force=False
        )
        docker_client.api.kill.assert_called_once_with("abc123", signal="SIGKILL")
        docker_client.api.stop.assert_not_called()
        docker_client.api.remove_container.assert_called_once_with("abc123", v=True, force=True)

    def test_stop_tolerates_stopped_container(self, runtime, docker_client):
        docker_client.api.kill.side_effect = APIError(
            "Conflict", response=Mock(status_code=409), explanation="container is not running"
        )

        runtime.stop_container("abc123")

    def test_stop_failure_propagates(self, runtime, docker_client):
        docker_client.api.kill.side_effect = APIError(
            "Server Error", response=Mock(status_code=500), explanation="daemon unavailable"
        )

        with pytest.raises(APIError):
            runtime.stop_container("abc123")

    def test_open_log_stream(self, runtime, docker_client):
        docker_client.api._url.return_value = (
            "http+docker://localhost/v1.43/containers/eureka-vault/logs"
        )

        stream = runtime.open_log_stream("eureka-vault")

        docker_client.api._url.assert_called_once_with("/containers/{0}/logs", "eureka-vault")
        docker_client.api._get.assert_called_once_with(
            "http+docker://localhost/v1.43/containers/eureka-vault/logs",
            params={"stdout": 1, "stderr": 1},
            stream=True,
        )
        docker_client.api._raise_for_status.assert_called_once_with(
            docker_client.api._get.return_value
        )
        assert stream is docker_client.api._get.return_value.raw
