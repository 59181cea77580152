"""
Searcher

Broadcasts the probe every interval and collects the addresses that answer
with the acknowledgment. Each address is reported once per search session.
"""

import asyncio
import logging
import socket
import time
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..config import DEFAULT_BROADCAST_ADDRESS, coerce_duration
from .peer import DiscoveredPeer, PeerDispatcher
from .protocol import BUFFER_SIZE, encode_probe, is_acknowledgment
from .role import DiscoveryRole, Session

logger = logging.getLogger(__name__)


class SearchMode(Enum):
    """What a search session does after a peer is found."""
    CONTINUOUS = 'continuous'  # keep going, report each new address
    SINGLE = 'single'          # end the session after the first peer


class Searcher(DiscoveryRole):
    """
    Searches for advertisers on the local segment.

    Peers are handed to the dispatcher. The dedup table is cleared every
    time a new session starts and is only written by the search loop.
    """

    name = 'searcher'

    def __init__(self, secret: str, port: int, interval: float = 1.0,
                 timeout: float = 2.0,
                 broadcast_address: str = DEFAULT_BROADCAST_ADDRESS,
                 mode: SearchMode = SearchMode.CONTINUOUS,
                 dispatcher: Optional[PeerDispatcher] = None,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Initialize a searcher.

        Args:
            secret: Shared secret sent as the probe
            port: Discovery UDP port the advertisers listen on
            interval: Wait before each probe (seconds)
            timeout: Longest a single receive may block (seconds)
            broadcast_address: Where probes are sent
            mode: CONTINUOUS or SINGLE
            dispatcher: Receives newly discovered peers
            loop: Event loop to run on (defaults to the running loop at start)
        """
        super().__init__(secret, port, timeout=timeout, loop=loop)
        self.interval = coerce_duration(interval)
        self.broadcast_address = broadcast_address
        self.mode = mode
        self.dispatcher = dispatcher or PeerDispatcher()

        # address -> peer, for the current session
        self._peers: Dict[str, DiscoveredPeer] = {}

        # Statistics
        self.probes_sent = 0
        self.timeouts = 0
        self.invalid_replies = 0

    def get_peers(self) -> List[DiscoveredPeer]:
        """Peers found in the current (or last) session."""
        return list(self._peers.values())

    def get_peer(self, address: str) -> Optional[DiscoveredPeer]:
        return self._peers.get(address)

    def _on_session_start(self):
        self._peers.clear()

    def _open_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.bind(('', 0))
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise
        return sock

    async def _run(self, session: Session):
        loop = asyncio.get_running_loop()
        probe = encode_probe(self.secret)

        while self._is_current(session):
            await asyncio.sleep(self.interval)
            await self._send_probe(session, probe)

            try:
                data, addr = await asyncio.wait_for(
                    loop.sock_recvfrom(session.sock, BUFFER_SIZE),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                self.timeouts += 1
                logger.debug(f"No acknowledgment within {self.timeout}s, resetting socket")
                self._reset_socket(session)
                continue

            if not is_acknowledgment(data):
                self.invalid_replies += 1
                logger.warning(f"Ignoring malformed reply from {addr[0]}:{addr[1]}")
                continue

            peer = self._record(addr)
            if peer is None:
                continue

            logger.info(f"Discovered server at {peer.endpoint}")
            self.dispatcher.deliver(peer)

            if self.mode == SearchMode.SINGLE:
                logger.info("Search finished after the first server")
                return

    async def _send_probe(self, session: Session, probe: bytes):
        loop = asyncio.get_running_loop()
        target = (self.broadcast_address, self.port)
        try:
            await loop.sock_sendto(session.sock, probe, target)
            self.probes_sent += 1
        except OSError as e:
            logger.warning(f"Failed to send probe to {target[0]}:{target[1]}: {e}")

    def _record(self, addr: Tuple[str, int]) -> Optional[DiscoveredPeer]:
        """Remember a responder; None if it was already reported."""
        address, port = addr[0], addr[1]
        if address in self._peers:
            logger.debug(f"Already reported {address}, skipping")
            return None

        peer = DiscoveredPeer(address=address, port=port, discovered_at=time.time())
        self._peers[address] = peer
        return peer
