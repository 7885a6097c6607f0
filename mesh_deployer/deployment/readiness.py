"""
Bounded-retry readiness checks for deployed modules and sidecars.
"""

import asyncio
import logging
from typing import List, Optional, Tuple

from mesh_deployer.errors import ModuleNotReady
from mesh_deployer.http_probe import HttpProbe

logger = logging.getLogger(__name__)

HTTP_OK = 200


class ReadinessProbe:
    """
    Polls a module's health endpoint until it answers 200.

    Waits a fixed interval between attempts; there is no backoff.
    """

    def __init__(
        self,
        probe,
        base_url: str = "http://localhost",
        health_path: str = "/admin/health",
        max_retries: int = 50,
        wait_seconds: float = 10.0,
    ):
        """
        Args:
            probe: Object with an async ping(url) -> status code
            base_url: Host-side base URL the module ports are exposed on
            health_path: Health check path
            max_retries: Probe calls before giving up
            wait_seconds: Sleep between probe calls
        """
        self.probe = probe
        self.base_url = base_url
        self.health_path = health_path
        self.max_retries = max_retries
        self.wait_seconds = wait_seconds

    @classmethod
    def from_config(cls, config, probe=None) -> "ReadinessProbe":
        """Build a readiness probe; an HttpProbe with the configured timeout by default."""
        if probe is None:
            probe = HttpProbe(timeout=config.readiness.probe_timeout)
        return cls(
            probe=probe,
            base_url=config.gateway_url,
            health_path=config.readiness.health_path,
            max_retries=config.readiness.max_retries,
            wait_seconds=config.readiness.wait_seconds,
        )

    def health_url(self, port: int) -> str:
        return f"{self.base_url}:{port}{self.health_path}"

    async def check(self, name: str, port: int) -> None:
        """
        Wait for a module to become ready.

        Raises:
            ModuleNotReady: Every attempt failed
        """
        url = self.health_url(port)
        logger.info(f"Waiting for module {name} on port {port}")

        for attempt in range(1, self.max_retries + 1):
            try:
                status = await self.probe.ping(url)
            except Exception as e:
                logger.debug(f"Health check of {name} failed: {e}")
                status = None

            if status == HTTP_OK:
                logger.info(f"Module {name} is ready")
                return

            remaining = self.max_retries - attempt
            if remaining == 0:
                break
            logger.info(
                f"Module {name} is unready, {remaining} of {self.max_retries} retries remaining"
            )
            await asyncio.sleep(self.wait_seconds)

        logger.error(f"Module {name} is unready and out of retries")
        raise ModuleNotReady(name)

    async def check_all(self, targets: List[Tuple[str, int]]) -> None:
        """
        Check several targets concurrently and wait for all of them.

        Each task reports its failure through a queue sized to the number of
        targets. A report that does not fit is dropped; with the queue sized
        this way that never happens, and the first failure is raised once
        every task has finished.
        """
        errors: "asyncio.Queue[ModuleNotReady]" = asyncio.Queue(maxsize=len(targets))

        async def run(name: str, port: int) -> None:
            try:
                await self.check(name, port)
            except ModuleNotReady as e:
                try:
                    errors.put_nowait(e)
                except asyncio.QueueFull:
                    logger.debug(f"Dropped readiness failure report for {name}")

        await asyncio.gather(*(run(name, port) for name, port in targets))

        first_error: Optional[ModuleNotReady] = None
        while not errors.empty():
            error = errors.get_nowait()
            if first_error is None:
                first_error = error
        if first_error is not None:
            raise first_error

    async def check_pair(
        self, module_name: str, module_port: int, sidecar_name: str, sidecar_port: int
    ) -> None:
        """Check a module and its sidecar as two concurrent tasks."""
        await self.check_all([(module_name, module_port), (sidecar_name, sidecar_port)])
