"""
Discovered Peers and Delivery

A DiscoveredPeer is the endpoint that acknowledged one of our probes.
PeerDispatcher hands new peers to consumer callbacks on the event loop the
consumer lives on.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class DiscoveredPeer:
    """Information about a discovered peer."""
    address: str
    port: int
    discovered_at: float = field(default_factory=time.time)

    @property
    def endpoint(self) -> str:
        return f"{self.address}:{self.port}"

    def __hash__(self):
        return hash((self.address, self.port))

    def __eq__(self, other):
        if isinstance(other, DiscoveredPeer):
            return self.address == other.address and self.port == other.port
        return False

    def __str__(self) -> str:
        return self.endpoint


# Callback type for server-found events
PeerCallback = Callable[[DiscoveredPeer], None]


class PeerDispatcher:
    """
    Delivers discovered peers to registered callbacks.

    If a consumer loop is set and it is not the loop we are running on, the
    callbacks are scheduled onto it with call_soon_threadsafe. Otherwise they
    run directly, on the discovery loop.
    """

    def __init__(self, consumer_loop: Optional[asyncio.AbstractEventLoop] = None):
        self.consumer_loop = consumer_loop
        self._callbacks: List[PeerCallback] = []

    def add_callback(self, callback: PeerCallback):
        self._callbacks.append(callback)

    def remove_callback(self, callback: PeerCallback):
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def deliver(self, peer: DiscoveredPeer):
        """Report a peer to every callback, in the consumer's context."""
        target = self.consumer_loop
        if target is None or target is running_loop():
            self._invoke(peer)
            return

        if target.is_closed():
            logger.warning(f"Consumer loop is closed, dropping peer {peer}")
            return

        target.call_soon_threadsafe(self._invoke, peer)

    def _invoke(self, peer: DiscoveredPeer):
        for callback in list(self._callbacks):
            try:
                callback(peer)
            except Exception as e:
                logger.error(f"Callback error: {e}")


def running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
