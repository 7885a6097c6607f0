"""
Deployment module.

Provides deployment of modules and their sidecars including:
- Batch deployment with concurrent sidecar fan-out
- Container lifecycle operations with per-call timeouts
- Readiness checks with bounded retries
- Interception and upgrade of a single module and sidecar pair

Usage:
    from mesh_deployer.deployment import (
        ContainerLifecycle,
        DeploymentOrchestrator,
        ReadinessProbe,
    )

    lifecycle = ContainerLifecycle.from_config(config)
    readiness = ReadinessProbe.from_config(config)
    orchestrator = DeploymentOrchestrator(config, lifecycle, readiness=readiness)
    await orchestrator.run(resolver, registry)
"""

from mesh_deployer.deployment.containers import ContainerLifecycle, find_log_line
from mesh_deployer.deployment.helpers import (
    construct_url,
    container_name,
    next_module_version,
    pair_pattern,
    port_from_url,
)
from mesh_deployer.deployment.orchestrator import DeploymentOrchestrator
from mesh_deployer.deployment.pairing import ModulePairing
from mesh_deployer.deployment.readiness import ReadinessProbe

__all__ = [
    # Orchestration
    "DeploymentOrchestrator",
    "ModulePairing",
    # Sub-modules
    "ContainerLifecycle",
    "ReadinessProbe",
    # Helper functions
    "construct_url",
    "container_name",
    "find_log_line",
    "next_module_version",
    "pair_pattern",
    "port_from_url",
]
