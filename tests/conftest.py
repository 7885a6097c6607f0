"""
Pytest configuration and fixtures for mesh-deployer tests.
"""

import os
import pytest
from unittest.mock import MagicMock, patch


def pytest_configure(config):
    """
    Clear environment overrides before any test modules are imported.
    This runs very early in the pytest lifecycle.
    """
    os.environ.pop("AWS_ECR_FOLIO_REPO", None)


@pytest.fixture
def mock_docker_client():
    """Mock Docker client for tests."""
    with patch("docker.from_env") as mock_docker:
        client = MagicMock()
        mock_docker.return_value = client
        yield client


@pytest.fixture
def temp_dirs(tmp_path):
    """Create temporary directories for testing."""
    dirs = {
        "config": tmp_path / "config",
        "descriptors": tmp_path / "descriptors",
        "logs": tmp_path / "logs",
    }

    for dir_path in dirs.values():
        dir_path.mkdir(parents=True, exist_ok=True)

    return dirs
