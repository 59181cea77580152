"""
LAN Discovery

Finds servers of the same application on the local network segment: a
serving process answers broadcast probes that carry a shared secret, and a
searching process collects the servers that answer.
"""

from .config import Config, ConfigError, load_config
from .host import ConnectionState, HostNetwork, LocalHost
from .discovery import DiscoveredPeer, DiscoveryManager, SearchMode

__version__ = '1.0.0'

__all__ = [
    'Config',
    'ConfigError',
    'load_config',
    'ConnectionState',
    'HostNetwork',
    'LocalHost',
    'DiscoveredPeer',
    'DiscoveryManager',
    'SearchMode',
]
