"""
Port allocation for module and sidecar containers.

Hands out host ports from a pre-reserved pool. Allocation is serialized with a
lock so concurrent resolvers never receive the same port.
"""

import logging
import socket
import threading
from typing import Iterable, List, Optional, Set

from mesh_deployer.errors import PortExhausted

logger = logging.getLogger(__name__)


class PortAllocator:
    """Allocates unused host ports from a bounded pool."""

    def __init__(
        self,
        start_port: int = 30000,
        end_port: int = 30999,
        reserved_ports: Optional[Iterable[int]] = None,
        check_system: bool = True,
        host: str = "0.0.0.0",
    ):
        """
        Initialize port allocator.

        Args:
            start_port: First port in allocation range
            end_port: Last port in allocation range (inclusive)
            reserved_ports: Ports never handed out
            check_system: Bind-test each candidate port on the host
            host: Host address used for the bind test
        """
        if start_port > end_port:
            raise ValueError(f"Invalid port range {start_port}-{end_port}")

        self.start_port = start_port
        self.end_port = end_port
        self.check_system = check_system
        self.host = host

        self.allocated_ports: Set[int] = set()
        self.reserved_ports: Set[int] = set(reserved_ports or ())
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config) -> "PortAllocator":
        """Build an allocator from a DeployerConfig."""
        return cls(
            start_port=config.ports.start,
            end_port=config.ports.end,
            reserved_ports=config.ports.reserved,
            check_system=config.ports.check_system,
            host=config.network.host_ip,
        )

    def allocate(self, count: int) -> List[int]:
        """
        Allocate several distinct ports at once.

        Args:
            count: Number of ports required

        Returns:
            List of allocated ports, in ascending order

        Raises:
            PortExhausted: If the pool cannot satisfy the whole request
        """
        if count < 1:
            return []

        with self._lock:
            ports: List[int] = []
            for port in range(self.start_port, self.end_port + 1):
                if port in self.allocated_ports or port in self.reserved_ports:
                    continue
                if self.check_system and self._is_port_in_use(port):
                    logger.warning(
                        f"Port {port} is marked as available but is in use on system, skipping"
                    )
                    continue

                ports.append(port)
                if len(ports) == count:
                    break

            if len(ports) < count:
                raise PortExhausted(self.start_port, self.end_port, count)

            self.allocated_ports.update(ports)

        logger.debug(f"Allocated ports {ports}")
        return ports

    def allocate_one(self) -> int:
        """Allocate a single port."""
        return self.allocate(1)[0]

    def reserve(self, port: int) -> None:
        """
        Mark an explicitly configured port as taken.

        Ports outside the pool are left alone; allocation never reaches them.
        """
        if port < self.start_port or port > self.end_port:
            return
        with self._lock:
            if port in self.allocated_ports:
                logger.warning(f"Port {port} is configured explicitly but already allocated")
            self.allocated_ports.add(port)

    def release(self, ports: Iterable[int]) -> None:
        """Return ports to the pool."""
        with self._lock:
            for port in ports:
                self.allocated_ports.discard(port)

    def is_port_available(self, port: int) -> bool:
        """Check if a port is available for allocation."""
        if port < self.start_port or port > self.end_port:
            return False
        with self._lock:
            return port not in self.allocated_ports and port not in self.reserved_ports

    def _is_port_in_use(self, port: int) -> bool:
        """
        Check if a port is actually in use on the system.

        Returns:
            True if port is in use, False if available
        """
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                sock.bind((self.host, port))
                return False
            except OSError:
                return True
