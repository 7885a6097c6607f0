"""
Helpers shared by the deployment flows.

Container naming, name filter patterns, URL handling, resource parsing and
module version arithmetic.
"""

import re
from typing import Any, Mapping, Optional

from mesh_deployer import constants
from mesh_deployer.models.module import ResourceSpec

SNAPSHOT_DELIMITER = "-SNAPSHOT."

_SEMVER_PATTERN = re.compile(
    r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
)
_COLON_PREFIX_PATTERN = re.compile(r".*:")


def container_name(name: str, profile: str, prefix: str = "eureka") -> str:
    """
    Runtime container name for a module or sidecar.

    Management modules get one fixed name; everything else is scoped by
    profile so the same module can run under several profiles.
    """
    if name.startswith(constants.MANAGEMENT_MODULE_PREFIX):
        return f"{prefix}-{name}"
    return f"{prefix}-{profile}-{name}"


def profile_pattern(profile: str, prefix: str = "eureka") -> str:
    return constants.PROFILE_CONTAINER_PATTERN.format(prefix=prefix, profile=profile)


def management_pattern(prefix: str = "eureka") -> str:
    return constants.MANAGEMENT_CONTAINER_PATTERN.format(prefix=prefix)


def pair_pattern(module_name: str, profile: str, prefix: str = "eureka") -> str:
    """Name filter matching exactly one module container and its sidecar."""
    return constants.SINGLE_PAIR_CONTAINER_PATTERN.format(
        prefix=prefix, profile=profile, name=module_name
    )


def build_resources(raw: Optional[Mapping[str, Any]], is_module: bool = True) -> ResourceSpec:
    """
    Build container resources from a raw mapping.

    An empty mapping yields the module or sidecar defaults. Otherwise each
    field is read independently and falls back to the module default when
    missing or of the wrong type.
    """
    if not raw:
        return ResourceSpec() if is_module else ResourceSpec.sidecar_defaults()

    return ResourceSpec(
        cpu_count=_int_or_default(raw, constants.CPU_COUNT_KEY, constants.MODULE_CPU),
        memory_reservation=_int_or_default(
            raw, constants.MEMORY_RESERVATION_KEY, constants.MODULE_MEMORY_RESERVATION
        ),
        memory=_int_or_default(raw, constants.MEMORY_KEY, constants.MODULE_MEMORY),
        memory_swap=_int_or_default(raw, constants.MEMORY_SWAP_KEY, constants.MODULE_SWAP),
        oom_kill_disable=_bool_or_default(raw, constants.OOM_KILL_DISABLE_KEY, False),
    )


def construct_url(url: str, base_url: str) -> str:
    """Expand a bare port (or host-relative value) against the gateway URL."""
    if url.startswith("http://") or url.startswith("https://"):
        return url
    return f"{base_url}:{url}"


def port_from_url(url: str) -> int:
    """
    Extract the port from a URL such as http://host.docker.internal:37002.

    Raises:
        ValueError: If the text after the last colon is not a number
    """
    return int(_COLON_PREFIX_PATTERN.sub("", url).strip().rstrip("/"))


def text_after_last_colon(line: str) -> str:
    return _COLON_PREFIX_PATTERN.sub("", line).strip()


def is_snapshot(version: str) -> bool:
    """True for versions carrying a snapshot build number, e.g. 1.2.0-SNAPSHOT.42."""
    return SNAPSHOT_DELIMITER in version


def increment_snapshot_version(version: str) -> str:
    """
    Bump the build number of a snapshot version.

    Raises:
        ValueError: For empty, malformed or non-snapshot versions
    """
    if not version:
        raise ValueError("version cannot be empty")
    if not is_snapshot(version):
        raise ValueError(f"{version} is not a SNAPSHOT version with build number")

    parts = version.split(SNAPSHOT_DELIMITER)
    if len(parts) != 2:
        raise ValueError(f"invalid SNAPSHOT version format: {version}")

    base, build = parts
    try:
        build_number = int(build)
    except ValueError:
        raise ValueError(f"invalid build number in {version}: {build}") from None

    return f"{base}{SNAPSHOT_DELIMITER}{build_number + 1}"


def increment_patch_version(version: str) -> str:
    """
    Next patch release of a semantic version.

    A pre-release is promoted to its release (1.0.0-rc.1 becomes 1.0.0) instead
    of bumping the patch number. Build metadata is dropped.

    Raises:
        ValueError: If the version is not a semantic version
    """
    match = _SEMVER_PATTERN.match(version)
    if not match:
        raise ValueError(f"Invalid semantic version: {version}")

    major = int(match.group("major"))
    minor = int(match.group("minor") or 0)
    patch = int(match.group("patch") or 0)
    if not match.group("prerelease"):
        patch += 1
    return f"{major}.{minor}.{patch}"


def next_module_version(version: str) -> str:
    """Snapshot build bump for snapshot versions, patch bump otherwise."""
    if is_snapshot(version):
        return increment_snapshot_version(version)
    return increment_patch_version(version)


def _int_or_default(raw: Mapping[str, Any], key: str, default: int) -> int:
    value = raw.get(key)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return default


def _bool_or_default(raw: Mapping[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key)
    return value if isinstance(value, bool) else default
