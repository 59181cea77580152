"""Tests for discovered-peer delivery."""

import asyncio
import threading

from lan_discovery.discovery.peer import DiscoveredPeer, PeerDispatcher


def test_peer_identity():
    a = DiscoveredPeer('192.168.1.5', 47777, discovered_at=1.0)
    b = DiscoveredPeer('192.168.1.5', 47777, discovered_at=2.0)
    c = DiscoveredPeer('192.168.1.6', 47777)

    assert a == b
    assert hash(a) == hash(b)
    assert a != c
    assert a.endpoint == '192.168.1.5:47777'
    assert str(c) == '192.168.1.6:47777'


def test_direct_delivery_without_consumer_loop():
    dispatcher = PeerDispatcher()
    seen = []
    dispatcher.add_callback(seen.append)

    peer = DiscoveredPeer('10.0.0.1', 47777)
    dispatcher.deliver(peer)

    assert seen == [peer]


def test_removed_callback_is_not_called():
    dispatcher = PeerDispatcher()
    seen = []
    dispatcher.add_callback(seen.append)
    dispatcher.remove_callback(seen.append)

    dispatcher.deliver(DiscoveredPeer('10.0.0.1', 47777))

    assert seen == []


def test_failing_callback_does_not_block_others(caplog):
    dispatcher = PeerDispatcher()
    seen = []

    def broken(peer):
        raise ValueError("bad consumer")

    dispatcher.add_callback(broken)
    dispatcher.add_callback(seen.append)

    dispatcher.deliver(DiscoveredPeer('10.0.0.1', 47777))

    assert len(seen) == 1
    assert "Callback error" in caplog.text


async def test_delivery_is_marshalled_to_consumer_loop():
    consumer_loop = asyncio.new_event_loop()
    thread = threading.Thread(target=consumer_loop.run_forever, daemon=True)
    thread.start()

    try:
        dispatcher = PeerDispatcher(consumer_loop)
        delivered = threading.Event()
        threads = []

        def on_found(peer):
            threads.append(threading.current_thread())
            delivered.set()

        dispatcher.add_callback(on_found)
        dispatcher.deliver(DiscoveredPeer('10.0.0.1', 47777))

        assert await asyncio.to_thread(delivered.wait, 2.0)
        assert threads == [thread]
    finally:
        consumer_loop.call_soon_threadsafe(consumer_loop.stop)
        thread.join(2.0)
        consumer_loop.close()


async def test_delivery_to_own_loop_is_direct():
    dispatcher = PeerDispatcher(asyncio.get_running_loop())
    seen = []
    dispatcher.add_callback(seen.append)

    dispatcher.deliver(DiscoveredPeer('10.0.0.1', 47777))

    assert len(seen) == 1


def test_delivery_to_closed_loop_is_dropped(caplog):
    loop = asyncio.new_event_loop()
    loop.close()

    dispatcher = PeerDispatcher(loop)
    seen = []
    dispatcher.add_callback(seen.append)
    dispatcher.deliver(DiscoveredPeer('10.0.0.1', 47777))

    assert seen == []
    assert "closed" in caplog.text
