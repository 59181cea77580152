"""
Discovery Manager

Role guard for LAN discovery. Decides whether this process may advertise or
search given what the host application is doing, and optionally follows the
host's connection-state changes to switch roles on its own.
"""

import asyncio
import logging
from typing import List, Optional

from ..config import Config
from ..host import ConnectionState, HostNetwork
from .advertiser import Advertiser
from .peer import DiscoveredPeer, PeerCallback, PeerDispatcher
from .searcher import SearchMode, Searcher

logger = logging.getLogger(__name__)


class DiscoveryManager:
    """
    Manages the advertiser and the searcher for one host.

    - Advertising requires the host to be serving, on a port other than the
      discovery port.
    - Searching requires the host to be neither serving nor connected.
    - Starting a role that is already running is a no-op.
    """

    def __init__(self, config: Config, host: HostNetwork,
                 loop: Optional[asyncio.AbstractEventLoop] = None,
                 consumer_loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Initialize discovery manager.

        Args:
            config: Discovery configuration (validated here)
            host: The host application's networking state
            loop: Event loop the discovery loops run on
            consumer_loop: Event loop server-found callbacks must run on
        """
        self.config = config.validate()
        self.host = host

        self.dispatcher = PeerDispatcher(consumer_loop)

        self._advertiser = Advertiser(
            secret=config.secret,
            port=config.discovery_port,
            timeout=config.timeout,
            loop=loop,
        )
        self._searcher = Searcher(
            secret=config.secret,
            port=config.discovery_port,
            interval=config.interval,
            timeout=config.timeout,
            broadcast_address=config.broadcast_address,
            mode=SearchMode(config.search_mode),
            dispatcher=self.dispatcher,
            loop=loop,
        )

        self._automatic = False

    @property
    def advertiser(self) -> Advertiser:
        return self._advertiser

    @property
    def searcher(self) -> Searcher:
        return self._searcher

    @property
    def is_advertising(self) -> bool:
        return self._advertiser.is_active

    @property
    def is_searching(self) -> bool:
        return self._searcher.is_active

    @property
    def is_automatic(self) -> bool:
        return self._automatic

    def on_server_found(self, callback: PeerCallback):
        """Register a callback for newly discovered servers."""
        self.dispatcher.add_callback(callback)

    def get_peers(self) -> List[DiscoveredPeer]:
        """Get servers discovered in the current search session."""
        return self._searcher.get_peers()

    def get_peer(self, address: str) -> Optional[DiscoveredPeer]:
        return self._searcher.get_peer(address)

    # === Role guard ===

    def start_advertising(self) -> bool:
        """Advertise this host's server. Returns True if advertising began."""
        if not self.host.is_server_active():
            logger.warning("Unable to start advertising server. Server is inactive.")
            return False

        if self._advertiser.is_active:
            logger.info("Server is already being advertised.")
            return False

        if self.config.discovery_port == self.host.primary_transport_port():
            logger.warning(
                f"Unable to start advertising server. Discovery port "
                f"{self.config.discovery_port} is the server's transport port."
            )
            return False

        if self._searcher.is_active:
            self.stop_searching()

        return self._advertiser.start()

    def stop_advertising(self) -> bool:
        return self._advertiser.stop()

    def start_searching(self) -> bool:
        """Search for servers. Returns True if a new search session began."""
        if self.host.is_server_active():
            logger.warning("Unable to start searching for servers. Server is active.")
            return False

        if self.host.is_client_active():
            logger.warning("Unable to start searching for servers. Client is active.")
            return False

        if self._searcher.is_active:
            logger.info("Already searching for servers.")
            return False

        return self._searcher.start()

    def stop_searching(self) -> bool:
        return self._searcher.stop()

    def stop(self):
        """Stop whichever role is running."""
        self.stop_advertising()
        self.stop_searching()

    async def wait_closed(self):
        """Wait for both loops to finish unwinding."""
        await self._advertiser.wait_closed()
        await self._searcher.wait_closed()

    # === Automatic mode ===

    def enable_automatic(self):
        """Follow the host's server/client state changes."""
        if self._automatic:
            return

        self.host.subscribe_server_state(self._on_server_state)
        self.host.subscribe_client_state(self._on_client_state)
        self._automatic = True
        logger.info("Automatic discovery enabled")

        if self.host.is_server_active():
            self.start_advertising()
        elif not self.host.is_client_active():
            self.start_searching()

    def disable_automatic(self):
        if not self._automatic:
            return

        self.host.unsubscribe_server_state(self._on_server_state)
        self.host.unsubscribe_client_state(self._on_client_state)
        self._automatic = False
        logger.info("Automatic discovery disabled")

    def close(self):
        """Detach from the host and stop all discovery."""
        self.disable_automatic()
        self.stop()

    def _on_server_state(self, state: ConnectionState):
        if state == ConnectionState.STARTED:
            self.start_advertising()
        elif state == ConnectionState.STOPPED:
            self.stop_advertising()
            self.start_searching()

    def _on_client_state(self, state: ConnectionState):
        if state == ConnectionState.STARTED:
            self.stop_searching()
        elif state == ConnectionState.STOPPED:
            self.start_searching()

    def get_stats(self) -> dict:
        """Get discovery statistics."""
        return {
            'advertising': self.is_advertising,
            'searching': self.is_searching,
            'automatic': self._automatic,
            'search_mode': self._searcher.mode.value,
            'total_peers': len(self._searcher.get_peers()),
            'probes_sent': self._searcher.probes_sent,
            'probes_answered': self._advertiser.probes_answered,
            'probes_rejected': self._advertiser.probes_rejected,
            'search_timeouts': self._searcher.timeouts,
            'socket_resets': self._advertiser.socket_resets + self._searcher.socket_resets,
        }
