"""
Advertiser

Answers discovery probes on the discovery port. A probe carrying our secret
gets the acknowledgment back; anything else is dropped.
"""

import asyncio
import logging
import socket
from typing import Optional

from .protocol import ACK, BUFFER_SIZE, is_valid_probe
from .role import DiscoveryRole, Session

logger = logging.getLogger(__name__)


class Advertiser(DiscoveryRole):
    """
    Advertises a server by acknowledging probes.

    The receive is bounded by the timeout; when it expires the socket is
    closed and re-bound, and the loop carries on.
    """

    name = 'advertiser'

    def __init__(self, secret: str, port: int, timeout: float = 2.0,
                 bind_address: str = '',
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        super().__init__(secret, port, timeout=timeout, loop=loop)
        self.bind_address = bind_address

        # Statistics
        self.probes_answered = 0
        self.probes_rejected = 0

    def _open_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.bind((self.bind_address, self.port))
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise
        return sock

    async def _run(self, session: Session):
        loop = asyncio.get_running_loop()

        while self._is_current(session):
            try:
                data, addr = await asyncio.wait_for(
                    loop.sock_recvfrom(session.sock, BUFFER_SIZE),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                logger.debug(f"No probe within {self.timeout}s, resetting socket")
                self._reset_socket(session)
                continue

            if not is_valid_probe(data, self.secret):
                self.probes_rejected += 1
                logger.warning(f"Ignoring probe with an unknown secret from {addr[0]}:{addr[1]}")
                continue

            try:
                await loop.sock_sendto(session.sock, ACK, addr)
            except OSError as e:
                logger.warning(f"Failed to acknowledge {addr[0]}:{addr[1]}: {e}")
                continue

            self.probes_answered += 1
            logger.debug(f"Acknowledged probe from {addr[0]}:{addr[1]}")
