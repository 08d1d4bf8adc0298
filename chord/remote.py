"""
The capability a Chord node needs to reach its peers, and its failure values.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Union

from .routing import NodeDescriptor


class ChordError(Exception):
    """Base class for Chord errors."""


class TransportError(ChordError):
    """A remote call did not complete: timeout, refused connection, bad reply."""

    def __init__(self, target: Optional[NodeDescriptor], message: str):
        self.target = target
        super().__init__(f"{target}: {message}" if target is not None else message)


class RemoteError(TransportError):
    """The remote node answered with an error instead of a result."""


class LookupHopLimitExceeded(ChordError):
    """A lookup was forwarded more times than the hop guard allows."""

    def __init__(self, ring_id: int, hops: int):
        self.ring_id = ring_id
        self.hops = hops
        super().__init__(f"lookup for {ring_id} gave up after {hops} hops")


class Reachability(Enum):
    """Distinguished outcome of a call to a peer that could not be reached."""
    UNREACHABLE = "unreachable"


UNREACHABLE = Reachability.UNREACHABLE

PredecessorReply = Union[NodeDescriptor, None, Reachability]


class RemoteNodePort(ABC):
    """
    Operations a node invokes on a remote peer.

    Implementations must bound every call with a timeout and report a
    timeout exactly like a connection failure. Lookups and key
    assignment raise TransportError; the stabilization calls return
    UNREACHABLE instead so callers can branch on it.
    """

    @abstractmethod
    async def find_successor(self, target: NodeDescriptor, ring_id: int,
                             hops: int = 0) -> NodeDescriptor:
        """Ask target for the successor of ring_id."""

    @abstractmethod
    async def get_predecessor(self, target: NodeDescriptor) -> PredecessorReply:
        """Target's predecessor, None if it has none, UNREACHABLE on failure."""

    @abstractmethod
    async def notify(self, target: NodeDescriptor,
                     candidate: NodeDescriptor) -> Union[bool, Reachability]:
        """Tell target that candidate might be its predecessor."""

    @abstractmethod
    async def assign_key(self, target: NodeDescriptor, key: int) -> NodeDescriptor:
        """Hand key to target; returns the node that now owns it."""

    @abstractmethod
    async def health_check(self, target: NodeDescriptor) -> bool:
        """True only if target answered a liveness probe."""
