"""Shared fixtures for discovery tests."""

import pytest

from lan_discovery.config import Config
from lan_discovery.host import LocalHost
from lan_discovery.discovery import DiscoveryManager

from .helpers import free_udp_port


@pytest.fixture
def discovery_port():
    return free_udp_port()


@pytest.fixture
def config(discovery_port):
    """Loopback configuration with the shortest allowed waits."""
    return Config(
        secret='game-v1',
        discovery_port=discovery_port,
        broadcast_address='127.0.0.1',
        discovery_interval=1.0,
        discovery_timeout=2.0,
        host_port=7770,
    )


@pytest.fixture
def host(config):
    return LocalHost(config.host_port)


@pytest.fixture
async def manager(config, host):
    manager = DiscoveryManager(config, host)
    yield manager
    manager.close()
    await manager.wait_closed()
