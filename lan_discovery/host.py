"""
Host Application Adapter

Discovery never talks to the host application's networking directly. It
asks a HostNetwork whether the host is currently serving or connected, which
port its main transport uses, and subscribes to its connection-state changes.

LocalHost is an in-process implementation that just tracks those states.
The CLI and the REST API drive it the way a game or app would drive its own
server/client lifecycle.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle of the host's server or client connection."""
    STARTING = 'starting'
    STARTED = 'started'
    STOPPING = 'stopping'
    STOPPED = 'stopped'


# Callback type for connection-state events
StateCallback = Callable[[ConnectionState], None]


class HostNetwork(ABC):
    """What the discovery engine needs to know about its host."""

    @abstractmethod
    def is_server_active(self) -> bool:
        ...

    @abstractmethod
    def is_client_active(self) -> bool:
        ...

    @abstractmethod
    def primary_transport_port(self) -> int:
        ...

    @abstractmethod
    def subscribe_server_state(self, callback: StateCallback):
        ...

    @abstractmethod
    def unsubscribe_server_state(self, callback: StateCallback):
        ...

    @abstractmethod
    def subscribe_client_state(self, callback: StateCallback):
        ...

    @abstractmethod
    def unsubscribe_client_state(self, callback: StateCallback):
        ...


class LocalHost(HostNetwork):
    """
    Host state kept in process.

    Server and client are mutually exclusive: starting one while the other
    is up is refused with a warning.
    """

    def __init__(self, transport_port: int = 7770):
        self.transport_port = transport_port

        self._server_state = ConnectionState.STOPPED
        self._client_state = ConnectionState.STOPPED
        self.client_address: Optional[str] = None

        self._server_callbacks: List[StateCallback] = []
        self._client_callbacks: List[StateCallback] = []

    # === HostNetwork ===

    def is_server_active(self) -> bool:
        return self._server_state == ConnectionState.STARTED

    def is_client_active(self) -> bool:
        return self._client_state == ConnectionState.STARTED

    def primary_transport_port(self) -> int:
        return self.transport_port

    def subscribe_server_state(self, callback: StateCallback):
        self._server_callbacks.append(callback)

    def unsubscribe_server_state(self, callback: StateCallback):
        if callback in self._server_callbacks:
            self._server_callbacks.remove(callback)

    def subscribe_client_state(self, callback: StateCallback):
        self._client_callbacks.append(callback)

    def unsubscribe_client_state(self, callback: StateCallback):
        if callback in self._client_callbacks:
            self._client_callbacks.remove(callback)

    # === Lifecycle ===

    def start_server(self) -> bool:
        """Bring the host server up (STARTING -> STARTED)."""
        if self._server_state != ConnectionState.STOPPED:
            logger.info("Server is already running")
            return False

        if self._client_state != ConnectionState.STOPPED:
            logger.warning("Unable to start server while a client is connected")
            return False

        self._set_server_state(ConnectionState.STARTING)
        self._set_server_state(ConnectionState.STARTED)
        logger.info(f"Server started on port {self.transport_port}")
        return True

    def stop_server(self) -> bool:
        """Take the host server down (STOPPING -> STOPPED)."""
        if self._server_state == ConnectionState.STOPPED:
            return False

        self._set_server_state(ConnectionState.STOPPING)
        self._set_server_state(ConnectionState.STOPPED)
        logger.info("Server stopped")
        return True

    def connect_client(self, address: str) -> bool:
        """Connect the host client to a server at address."""
        if self._server_state != ConnectionState.STOPPED:
            logger.warning("Unable to connect client while the server is running")
            return False

        if self._client_state != ConnectionState.STOPPED:
            logger.info(f"Client is already connected to {self.client_address}")
            return False

        self.client_address = address
        self._set_client_state(ConnectionState.STARTING)
        self._set_client_state(ConnectionState.STARTED)
        logger.info(f"Client connected to {address}:{self.transport_port}")
        return True

    def disconnect_client(self) -> bool:
        """Disconnect the host client."""
        if self._client_state == ConnectionState.STOPPED:
            return False

        self._set_client_state(ConnectionState.STOPPING)
        self._set_client_state(ConnectionState.STOPPED)
        logger.info(f"Client disconnected from {self.client_address}")
        self.client_address = None
        return True

    def _set_server_state(self, state: ConnectionState):
        self._server_state = state
        self._notify(self._server_callbacks, state)

    def _set_client_state(self, state: ConnectionState):
        self._client_state = state
        self._notify(self._client_callbacks, state)

    def _notify(self, callbacks: List[StateCallback], state: ConnectionState):
        for callback in list(callbacks):
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Callback error: {e}")
