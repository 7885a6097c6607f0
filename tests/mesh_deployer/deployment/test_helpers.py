"""
Tests for deployment helpers.
"""

import re

import pytest

from mesh_deployer.deployment.helpers import (
    build_resources,
    construct_url,
    container_name,
    increment_patch_version,
    increment_snapshot_version,
    is_snapshot,
    management_pattern,
    next_module_version,
    pair_pattern,
    port_from_url,
    profile_pattern,
    text_after_last_colon,
)
from mesh_deployer.models.module import ResourceSpec


class TestContainerNaming:
    """Test container names and name filters."""

    def test_profile_scoped_name(self):
        assert container_name("mod-users", "combined") == "eureka-combined-mod-users"

    def test_management_name_is_fixed(self):
        assert container_name("mgr-tenants", "combined") == "eureka-mgr-tenants"
        assert container_name("mgr-tenants", "export") == "eureka-mgr-tenants"

    def test_patterns(self):
        assert profile_pattern("combined") == "^eureka-combined-"
        assert management_pattern() == "^eureka-mgr-"
        assert pair_pattern("mod-users", "combined") == (
            "^(eureka-combined-)(mod-users|mod-users-sc)$"
        )

    def test_pair_pattern_matches_only_the_pair(self):
        pattern = re.compile(pair_pattern("mod-users", "combined"))

        assert pattern.match("eureka-combined-mod-users")
        assert pattern.match("eureka-combined-mod-users-sc")
        assert not pattern.match("eureka-combined-mod-users-bl")
        assert not pattern.match("eureka-export-mod-users")


class TestResources:
    """Test container resource parsing."""

    def test_empty_uses_defaults(self):
        assert build_resources({}, is_module=True) == ResourceSpec()
        assert build_resources(None, is_module=False) == ResourceSpec.sidecar_defaults()

    def test_fields_read_independently(self):
        resources = build_resources({"memory": 1024, "cpu_count": "two", "oom_kill_disable": True})

        assert resources.memory == 1024
        assert resources.cpu_count == 1
        assert resources.memory_reservation == 120
        assert resources.oom_kill_disable is True


class TestUrls:
    """Test URL helpers."""

    def test_construct_url_from_port(self):
        assert construct_url("37001", "http://host.docker.internal") == (
            "http://host.docker.internal:37001"
        )

    def test_construct_url_keeps_full_url(self):
        assert construct_url("http://10.0.0.5:37001", "http://localhost") == (
            "http://10.0.0.5:37001"
        )

    def test_port_from_url(self):
        assert port_from_url("http://host.docker.internal:37002") == 37002
        assert port_from_url("http://host.docker.internal:37002/") == 37002

    def test_port_from_url_without_port(self):
        with pytest.raises(ValueError):
            port_from_url("http://host.docker.internal")

    def test_text_after_last_colon(self):
        line = "init.sh: Root VAULT TOKEN is: hvs.abc123\n"

        assert text_after_last_colon(line) == "hvs.abc123"


class TestVersions:
    """Test module version arithmetic."""

    def test_is_snapshot(self):
        assert is_snapshot("1.2.0-SNAPSHOT.42")
        assert not is_snapshot("1.2.0-SNAPSHOT")
        assert not is_snapshot("1.2.0")

    def test_increment_snapshot(self):
        assert increment_snapshot_version("13.1.0-SNAPSHOT.1093") == "13.1.0-SNAPSHOT.1094"

    def test_increment_snapshot_negative_build(self):
        assert increment_snapshot_version("1.0.0-SNAPSHOT.-5") == "1.0.0-SNAPSHOT.-4"

    @pytest.mark.parametrize(
        "version,message",
        [
            ("", "version cannot be empty"),
            ("1.0.0", "not a SNAPSHOT version with build number"),
            ("1.0.0-SNAPSHOT.1-SNAPSHOT.2", "invalid SNAPSHOT version format"),
            ("1.0.0-SNAPSHOT.abc", "invalid build number"),
        ],
    )
    def test_increment_snapshot_errors(self, version, message):
        with pytest.raises(ValueError, match=message):
            increment_snapshot_version(version)

    def test_increment_patch(self):
        assert increment_patch_version("19.3.0") == "19.3.1"
        assert increment_patch_version("v2.1.9") == "2.1.10"

    def test_prerelease_promoted(self):
        assert increment_patch_version("1.0.0-rc.1") == "1.0.0"

    def test_invalid_semver(self):
        with pytest.raises(ValueError):
            increment_patch_version("latest")

    def test_next_module_version(self):
        assert next_module_version("13.1.0-SNAPSHOT.1093") == "13.1.0-SNAPSHOT.1094"
        assert next_module_version("19.3.0") == "19.3.1"
