"""
Communication package for networking between Chord nodes.
"""

from .handlers import register_chord_handlers
from .loopback import LoopbackNetwork, LoopbackRemotePort
from .message import Message, MessageType
from .network import NetworkManager
from .remote_port import NetworkRemotePort

__all__ = [
    'Message', 'MessageType', 'NetworkManager', 'NetworkRemotePort',
    'LoopbackNetwork', 'LoopbackRemotePort', 'register_chord_handlers',
]
