"""
Discovery Role Base

Shared lifecycle for the advertiser and the searcher: an explicit IDLE/ACTIVE
state, a socket owned for the length of one session, and a background loop
task on the engine's event loop.

Design Decision: Stopping a Loop
================================

Options:
1. Close the socket and let the pending receive fail
   - Close from a foreign thread races the selector
   - Error path and normal exit look the same

2. Cancel the loop task, detach the socket from the selector, close it
   - Cancellation aborts the in-flight receive immediately
   - Must happen on the loop thread

Decision: Cancel and close on the loop before stop() returns
- On the loop thread teardown runs inline
- From another thread teardown is queued with call_soon_threadsafe and
  stop() waits for it, so the port is free once stop() returns
"""

import asyncio
import logging
import socket
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from ..config import ConfigError, coerce_duration
from .peer import running_loop

logger = logging.getLogger(__name__)


class RoleState(Enum):
    IDLE = 'idle'
    ACTIVE = 'active'


class Session:
    """One start..stop span of a role: the socket it owns and its loop task."""

    def __init__(self, sock: socket.socket):
        self.sock: Optional[socket.socket] = sock
        self.task: Optional[asyncio.Task] = None


class DiscoveryRole(ABC):
    """
    Base class for a discovery loop that runs while ACTIVE.

    Subclasses provide the socket (_open_socket) and one session's loop
    body (_run). start() and stop() may be called from any thread.
    """

    name = 'discovery'

    def __init__(self, secret: str, port: int, timeout: float = 2.0,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Initialize a discovery role.

        Args:
            secret: Shared secret identifying compatible instances
            port: Discovery UDP port
            timeout: Longest a single receive may block (seconds)
            loop: Event loop to run on (defaults to the running loop at start)
        """
        if not secret:
            raise ConfigError("Discovery secret must not be empty")

        self.secret = secret
        self.port = port
        self.timeout = coerce_duration(timeout)

        self._loop = loop
        self._lock = threading.RLock()
        self._state = RoleState.IDLE
        self._session: Optional[Session] = None
        self._last_task: Optional[asyncio.Task] = None

        # Statistics
        self.sessions_started = 0
        self.socket_resets = 0

    @property
    def state(self) -> RoleState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == RoleState.ACTIVE

    @property
    def has_socket(self) -> bool:
        """Whether the current session still owns an open socket."""
        session = self._session
        return session is not None and session.sock is not None

    def start(self) -> bool:
        """
        Start a session: open the socket and launch the loop.

        Returns:
            True if a new session was started
        """
        with self._lock:
            if self._state == RoleState.ACTIVE:
                logger.info(f"The {self.name} is already running")
                return False

            loop = self._resolve_loop()
            if loop is None:
                logger.error(f"Unable to start the {self.name}: no event loop available")
                return False

            try:
                sock = self._open_socket()
            except OSError as e:
                logger.error(f"Unable to start the {self.name} on port {self.port}: {e}")
                return False

            session = Session(sock)
            self._on_session_start()
            self._session = session
            self._state = RoleState.ACTIVE
            self.sessions_started += 1

            self._call_in_loop(self._launch, session)

        logger.info(f"Started the {self.name} on port {self.port}")
        return True

    def stop(self) -> bool:
        """
        Stop the current session. Safe to call when idle.

        Returns:
            True if a running session was stopped
        """
        with self._lock:
            session = self._session
            if self._state == RoleState.IDLE or session is None:
                return False

            self._session = None
            self._state = RoleState.IDLE

            released = threading.Event()
            loop = self._loop
            if (loop is None or loop.is_closed() or not loop.is_running()
                    or running_loop() is loop):
                self._teardown(session, released)
            else:
                loop.call_soon_threadsafe(self._teardown, session, released)

        # Outside the lock: the loop may need it to finish a pending launch
        if not released.wait(self.timeout):
            logger.warning(f"The {self.name} socket was not released within {self.timeout:g}s")

        logger.info(f"Stopped the {self.name}")
        return True

    async def wait_closed(self):
        """Wait until the most recent loop task has finished."""
        task = self._last_task
        if task is not None and not task.done():
            await asyncio.wait([task])

    # === Session plumbing ===

    def _resolve_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if self._loop is None or self._loop.is_closed():
            self._loop = running_loop()
        return self._loop

    def _call_in_loop(self, callback, *args):
        if running_loop() is self._loop:
            callback(*args)
        else:
            self._loop.call_soon_threadsafe(callback, *args)

    def _is_current(self, session: Session) -> bool:
        return self._session is session

    def _launch(self, session: Session):
        with self._lock:
            if not self._is_current(session):
                # Stopped before the loop got a chance to run
                return
            task = self._loop.create_task(self._run_session(session))
            # Runs even if the task is cancelled before its first step
            task.add_done_callback(lambda _: self._close_socket(session))
            session.task = task
            self._last_task = task

    def _teardown(self, session: Session, released: Optional[threading.Event] = None):
        if session.task is not None:
            session.task.cancel()
        self._detach_socket(session)
        self._close_socket(session)
        if released is not None:
            released.set()

    def _detach_socket(self, session: Session):
        # A cancelled sock_recvfrom only unregisters its reader on a later
        # iteration, so drop it now before the port is rebound
        sock = session.sock
        if sock is None or self._loop is None or self._loop.is_closed():
            return
        try:
            self._loop.remove_reader(sock)
            self._loop.remove_writer(sock)
        except NotImplementedError:
            pass

    async def _run_session(self, session: Session):
        try:
            await self._run(session)
        except asyncio.CancelledError:
            logger.debug(f"The {self.name} loop was cancelled")
        except Exception as e:
            logger.exception(f"The {self.name} loop failed: {e}")
        finally:
            self._close_socket(session)
            with self._lock:
                if self._is_current(session):
                    self._session = None
                    self._state = RoleState.IDLE
                    logger.info(f"The {self.name} returned to idle")

    def _reset_socket(self, session: Session):
        """Replace the session's socket with a fresh one."""
        self._close_socket(session)
        session.sock = self._open_socket()
        self.socket_resets += 1

    @staticmethod
    def _close_socket(session: Session):
        sock = session.sock
        session.sock = None
        if sock is None:
            return
        try:
            sock.close()
        except OSError as e:
            logger.debug(f"Error closing discovery socket: {e}")

    # === Subclass hooks ===

    def _on_session_start(self):
        """Called under the lock just before a session becomes current."""

    @abstractmethod
    def _open_socket(self) -> socket.socket:
        """Create the non-blocking UDP socket a session owns."""

    @abstractmethod
    async def _run(self, session: Session):
        """Loop body; runs until cancelled or it returns."""
