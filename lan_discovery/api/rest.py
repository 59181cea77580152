"""
REST API for LAN Discovery

Design Decision: Control Surface
================================

Options Considered:
1. In-process GUI listing (buttons per role, list of servers)
2. REST endpoints a separate UI can poll

Decision: FastAPI REST endpoints
- Same buttons as a discovery HUD: server start/stop, advertising
  start/stop, searching start/stop, connect to a listed server
- Endpoints run on the same event loop as the discovery loops, so role
  transitions need no extra marshalling
- Pydantic models document the responses
"""

import logging
from typing import Optional, List
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .. import __version__

logger = logging.getLogger(__name__)

# Global references (set when app is created)
_manager = None
_host = None


# === Pydantic Models ===

class DiscoveryStatus(BaseModel):
    """Discovery status response."""
    advertising: bool
    searching: bool
    automatic: bool
    server_active: bool
    client_active: bool
    discovered_peers: int


class RoleChange(BaseModel):
    """Result of a start/stop request."""
    changed: bool
    status: DiscoveryStatus


class PeerInfo(BaseModel):
    """Information about a discovered server."""
    address: str
    port: int
    discovered_at: float


class ConnectRequest(BaseModel):
    """Request to connect to a discovered server."""
    address: str


# === API Creation ===

def create_app(manager=None, host=None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        manager: DiscoveryManager instance to control
        host: LocalHost whose server/client the API may drive

    Returns:
        FastAPI application
    """
    global _manager, _host
    _manager = manager
    _host = host

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown."""
        logger.info("API server starting...")
        yield
        logger.info("API server stopping...")
        if _manager:
            _manager.close()

    app = FastAPI(
        title="LAN Discovery API",
        description="REST API for advertising and finding servers on the local network",
        version=__version__,
        lifespan=lifespan,
    )

    def require_manager():
        if not _manager:
            raise HTTPException(status_code=503, detail="Discovery not initialized")
        return _manager

    def require_host():
        if not _host:
            raise HTTPException(status_code=503, detail="Host not initialized")
        return _host

    def current_status() -> DiscoveryStatus:
        manager = require_manager()
        return DiscoveryStatus(
            advertising=manager.is_advertising,
            searching=manager.is_searching,
            automatic=manager.is_automatic,
            server_active=manager.host.is_server_active(),
            client_active=manager.host.is_client_active(),
            discovered_peers=len(manager.get_peers()),
        )

    # === Endpoints ===

    @app.get("/", tags=["General"])
    async def root():
        """API root - basic info."""
        return {
            "name": "LAN Discovery",
            "version": __version__,
            "status": "ready" if _manager else "not initialized",
        }

    @app.get("/status", response_model=DiscoveryStatus, tags=["Discovery"])
    async def get_status():
        """Get discovery status."""
        return current_status()

    @app.get("/stats", tags=["Discovery"])
    async def get_stats():
        """Get detailed discovery statistics."""
        return require_manager().get_stats()

    @app.get("/peers", response_model=List[PeerInfo], tags=["Discovery"])
    async def list_peers():
        """List servers found in the current search session."""
        return [
            PeerInfo(
                address=p.address,
                port=p.port,
                discovered_at=p.discovered_at,
            )
            for p in require_manager().get_peers()
        ]

    # === Roles ===

    @app.post("/advertising/start", response_model=RoleChange, tags=["Advertising"])
    async def start_advertising():
        changed = require_manager().start_advertising()
        return RoleChange(changed=changed, status=current_status())

    @app.post("/advertising/stop", response_model=RoleChange, tags=["Advertising"])
    async def stop_advertising():
        changed = require_manager().stop_advertising()
        return RoleChange(changed=changed, status=current_status())

    @app.post("/searching/start", response_model=RoleChange, tags=["Searching"])
    async def start_searching():
        changed = require_manager().start_searching()
        return RoleChange(changed=changed, status=current_status())

    @app.post("/searching/stop", response_model=RoleChange, tags=["Searching"])
    async def stop_searching():
        changed = require_manager().stop_searching()
        return RoleChange(changed=changed, status=current_status())

    # === Host ===

    @app.post("/server/start", response_model=RoleChange, tags=["Host"])
    async def start_server():
        """Start the host server (advertising follows in automatic mode)."""
        changed = require_host().start_server()
        return RoleChange(changed=changed, status=current_status())

    @app.post("/server/stop", response_model=RoleChange, tags=["Host"])
    async def stop_server():
        changed = require_host().stop_server()
        return RoleChange(changed=changed, status=current_status())

    @app.post("/connect", response_model=RoleChange, tags=["Host"])
    async def connect(request: ConnectRequest):
        """Stop discovery and connect to a discovered server."""
        manager = require_manager()
        host = require_host()

        if manager.get_peer(request.address) is None:
            raise HTTPException(
                status_code=404,
                detail=f"No discovered server at {request.address}",
            )

        manager.stop()
        changed = host.connect_client(request.address)
        return RoleChange(changed=changed, status=current_status())

    @app.post("/disconnect", response_model=RoleChange, tags=["Host"])
    async def disconnect():
        changed = require_host().disconnect_client()
        return RoleChange(changed=changed, status=current_status())

    return app


async def run_api_server(manager, host, bind: str = "0.0.0.0", port: int = 8080,
                         log_level: Optional[str] = "info"):
    """
    Run the API server.

    Args:
        manager: DiscoveryManager instance
        host: LocalHost instance
        bind: Address to bind to
        port: Port to listen on
        log_level: uvicorn log level
    """
    import uvicorn

    app = create_app(manager, host)

    config = uvicorn.Config(
        app,
        host=bind,
        port=port,
        log_level=log_level,
    )
    server = uvicorn.Server(config)
    await server.serve()
