"""
Tests for host port allocation.
"""

import socket
import threading

import pytest

from mesh_deployer.errors import PortExhausted
from mesh_deployer.port_manager import PortAllocator


class TestPortAllocator:
    """Test PortAllocator functionality."""

    def test_allocate_distinct_ports(self):
        """Test that one request returns distinct ports in ascending order."""
        allocator = PortAllocator(start_port=31000, end_port=31010, check_system=False)

        ports = allocator.allocate(4)

        assert ports == [31000, 31001, 31002, 31003]
        assert allocator.allocated_ports == set(ports)

    def test_successive_requests_never_overlap(self):
        """Test that ports handed out earlier are not reused."""
        allocator = PortAllocator(start_port=31000, end_port=31010, check_system=False)

        first = allocator.allocate(3)
        second = allocator.allocate(3)

        assert not set(first) & set(second)

    def test_reserved_ports_skipped(self):
        """Test that reserved ports are never handed out."""
        allocator = PortAllocator(
            start_port=31000, end_port=31005, reserved_ports=[31000, 31002], check_system=False
        )

        assert allocator.allocate(2) == [31001, 31003]

    def test_exhaustion_raises(self):
        """Test that a request larger than the pool fails without allocating."""
        allocator = PortAllocator(start_port=31000, end_port=31002, check_system=False)

        with pytest.raises(PortExhausted) as exc_info:
            allocator.allocate(4)

        assert exc_info.value.requested == 4
        assert "31000-31002" in str(exc_info.value)
        assert allocator.allocated_ports == set()

    def test_allocate_one(self):
        """Test single port allocation."""
        allocator = PortAllocator(start_port=31000, end_port=31001, check_system=False)

        assert allocator.allocate_one() == 31000
        assert allocator.allocate_one() == 31001
        with pytest.raises(PortExhausted):
            allocator.allocate_one()

    def test_release_returns_ports(self):
        """Test that released ports can be allocated again."""
        allocator = PortAllocator(start_port=31000, end_port=31001, check_system=False)
        ports = allocator.allocate(2)

        allocator.release(ports)

        assert allocator.allocate(2) == ports

    def test_reserve_keeps_port_out_of_pool(self):
        """Test that a reserved in-range port is skipped and out-of-range ports are ignored."""
        allocator = PortAllocator(start_port=31000, end_port=31003, check_system=False)

        allocator.reserve(31000)
        allocator.reserve(9130)

        assert allocator.allocate(3) == [31001, 31002, 31003]
        assert 9130 not in allocator.allocated_ports

    def test_is_port_available(self):
        """Test availability checks."""
        allocator = PortAllocator(
            start_port=31000, end_port=31005, reserved_ports=[31001], check_system=False
        )
        allocator.allocate_one()

        assert allocator.is_port_available(31000) is False
        assert allocator.is_port_available(31001) is False
        assert allocator.is_port_available(31002) is True
        assert allocator.is_port_available(32000) is False

    def test_invalid_range(self):
        """Test that an inverted range is rejected."""
        with pytest.raises(ValueError):
            PortAllocator(start_port=31010, end_port=31000)

    def test_system_port_in_use_skipped(self):
        """Test that a port bound by another process is skipped."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            sock.listen(1)
            busy_port = sock.getsockname()[1]

            allocator = PortAllocator(
                start_port=busy_port, end_port=busy_port + 5, host="127.0.0.1"
            )
            ports = allocator.allocate(1)

        assert busy_port not in ports

    def test_concurrent_allocation_is_unique(self):
        """Test that concurrent callers never receive the same port."""
        allocator = PortAllocator(start_port=31000, end_port=31399, check_system=False)
        results = []
        lock = threading.Lock()

        def worker():
            ports = allocator.allocate(4)
            with lock:
                results.extend(ports)

        threads = [threading.Thread(target=worker) for _ in range(50)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 200
        assert len(set(results)) == 200

    def test_from_config(self, deployer_config):
        """Test building the allocator from configuration."""
        allocator = PortAllocator.from_config(deployer_config)

        assert allocator.start_port == 31000
        assert allocator.end_port == 31099
        assert allocator.check_system is False
