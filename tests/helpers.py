"""Helpers shared by the loopback discovery tests."""

import asyncio
import socket


def free_udp_port() -> int:
    """Ask the OS for a UDP port nobody is using right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.bind(('127.0.0.1', 0))
        return sock.getsockname()[1]


async def wait_until(predicate, timeout: float = 5.0, step: float = 0.05) -> bool:
    """Poll predicate until it holds or timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(step)
    return predicate()


async def send_probe(port: int, payload: bytes, timeout: float = 1.5):
    """Send one probe from a fresh socket; return the reply or None."""
    loop = asyncio.get_running_loop()
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.setblocking(False)
    sock.bind(('127.0.0.1', 0))
    try:
        await loop.sock_sendto(sock, payload, ('127.0.0.1', port))
        try:
            data, _ = await asyncio.wait_for(loop.sock_recvfrom(sock, 1024), timeout)
        except asyncio.TimeoutError:
            return None
        return data
    finally:
        sock.close()


class FakeResponder:
    """
    Stands in for an advertiser: answers every datagram on the discovery
    port with a fixed reply, repeated `copies` times.
    """

    def __init__(self, port: int, reply: bytes = b'\x01', copies: int = 1):
        self.port = port
        self.reply = reply
        self.copies = copies
        self.probes = []
        self._sock = None
        self._task = None

    async def __aenter__(self):
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.setblocking(False)
        self._sock.bind(('127.0.0.1', self.port))
        self._task = asyncio.create_task(self._serve())
        return self

    async def __aexit__(self, *exc):
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._sock.close()

    async def _serve(self):
        loop = asyncio.get_running_loop()
        while True:
            data, addr = await loop.sock_recvfrom(self._sock, 1024)
            self.probes.append(data)
            for _ in range(self.copies):
                await loop.sock_sendto(self._sock, self.reply, addr)
