"""
Discovery Module - Server Discovery on LAN

Provides the two discovery roles and the guard that arbitrates them:
- Advertiser - answers probes while the host is serving
- Searcher - broadcasts probes and collects answering servers
- DiscoveryManager - role guard and host lifecycle wiring
"""

from .peer import DiscoveredPeer, PeerCallback, PeerDispatcher
from .role import RoleState
from .advertiser import Advertiser
from .searcher import SearchMode, Searcher
from .manager import DiscoveryManager

__all__ = [
    'DiscoveredPeer',
    'PeerCallback',
    'PeerDispatcher',
    'RoleState',
    'Advertiser',
    'SearchMode',
    'Searcher',
    'DiscoveryManager',
]
