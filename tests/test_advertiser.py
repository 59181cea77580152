"""Tests for the advertiser loop over loopback UDP."""

import asyncio
import socket

import pytest

from lan_discovery.config import ConfigError
from lan_discovery.discovery import Advertiser, RoleState
from lan_discovery.discovery.protocol import ACK

from .helpers import send_probe, wait_until


@pytest.fixture
async def advertiser(discovery_port):
    advertiser = Advertiser('game-v1', discovery_port, timeout=2.0)
    yield advertiser
    advertiser.stop()
    await advertiser.wait_closed()


def test_empty_secret_is_rejected(discovery_port):
    with pytest.raises(ConfigError):
        Advertiser('', discovery_port)


async def test_valid_probe_is_acknowledged(advertiser, discovery_port):
    assert advertiser.start()
    await asyncio.sleep(0.05)

    reply = await send_probe(discovery_port, b'game-v1')

    assert reply == ACK
    assert advertiser.probes_answered == 1


async def test_wrong_secret_gets_no_reply(advertiser, discovery_port):
    assert advertiser.start()
    await asyncio.sleep(0.05)

    reply = await send_probe(discovery_port, b'wrong', timeout=0.5)

    assert reply is None
    assert advertiser.is_active
    assert advertiser.probes_rejected == 1

    # Still answering afterwards
    assert await send_probe(discovery_port, b'game-v1') == ACK


async def test_start_is_idempotent(advertiser):
    assert advertiser.start()
    first_socket = advertiser._session.sock

    assert not advertiser.start()

    assert advertiser.is_active
    assert advertiser._session.sock is first_socket
    assert advertiser.sessions_started == 1


async def test_stop_immediately_after_start_releases_socket(advertiser, discovery_port):
    assert advertiser.start()
    sock = advertiser._session.sock

    assert advertiser.stop()

    assert advertiser.state == RoleState.IDLE
    assert not advertiser.has_socket
    assert sock.fileno() == -1

    # Port is free again
    probe = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        probe.bind(('', discovery_port))
    finally:
        probe.close()


async def test_stop_is_idempotent(advertiser):
    assert not advertiser.stop()

    advertiser.start()
    assert advertiser.stop()
    assert not advertiser.stop()
    assert advertiser.state == RoleState.IDLE


async def test_bind_failure_leaves_advertiser_idle(discovery_port):
    blocker = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    blocker.bind(('', discovery_port))
    try:
        advertiser = Advertiser('game-v1', discovery_port)
        assert not advertiser.start()
        assert advertiser.state == RoleState.IDLE
        assert not advertiser.has_socket
    finally:
        blocker.close()


async def test_timeout_resets_socket_and_keeps_advertising(discovery_port):
    advertiser = Advertiser('game-v1', discovery_port, timeout=1.0)
    try:
        assert advertiser.start()

        assert await wait_until(lambda: advertiser.socket_resets >= 1, timeout=3.0)
        assert advertiser.is_active

        # Fresh socket still answers
        await asyncio.sleep(0.05)
        assert await send_probe(discovery_port, b'game-v1') == ACK
    finally:
        advertiser.stop()
        await advertiser.wait_closed()


async def test_restart_after_stop(advertiser, discovery_port):
    assert advertiser.start()
    advertiser.stop()
    await advertiser.wait_closed()

    assert advertiser.start()
    await asyncio.sleep(0.05)
    assert await send_probe(discovery_port, b'game-v1') == ACK
    assert advertiser.sessions_started == 2


async def test_restart_without_waiting_for_the_old_loop(advertiser, discovery_port):
    assert advertiser.start()
    await asyncio.sleep(0.05)

    advertiser.stop()
    assert advertiser.start()

    await asyncio.sleep(0.05)
    assert await send_probe(discovery_port, b'game-v1') == ACK
    assert advertiser.probes_answered == 1
