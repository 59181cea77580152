"""
API Module - REST API for LAN Discovery

Provides HTTP endpoints for controlling discovery and the local host.
"""

from .rest import create_app, run_api_server

__all__ = ['create_app', 'run_api_server']
