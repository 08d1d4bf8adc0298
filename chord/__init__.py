"""
Chord ring node package.
"""

from .lookup import LookupEngine
from .maintenance import Maintenance
from .node import ChordNode
from .remote import (UNREACHABLE, ChordError, LookupHopLimitExceeded, RemoteError,
                     RemoteNodePort, TransportError)
from .routing import FingerTable, NodeDescriptor
from .space import IdentitySpace, hash_node_id, in_range
from .stabilization import StabilizationProtocol
from .state import RingState

__all__ = [
    'ChordNode', 'FingerTable', 'NodeDescriptor', 'IdentitySpace', 'RingState',
    'LookupEngine', 'StabilizationProtocol', 'Maintenance', 'RemoteNodePort',
    'UNREACHABLE', 'ChordError', 'TransportError', 'RemoteError',
    'LookupHopLimitExceeded', 'hash_node_id', 'in_range',
]
