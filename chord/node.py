"""
Core Chord node implementation.
"""

import logging
from typing import Any, Dict, List, Optional, Union

import config
from .lookup import LookupEngine
from .remote import (UNREACHABLE, PredecessorReply, Reachability, RemoteNodePort,
                     TransportError)
from .routing import NodeDescriptor
from .space import IdentitySpace, hash_node_id
from .stabilization import StabilizationProtocol
from .state import RingState


class ChordNode:
    """
    A node in the Chord ring.

    Each node maintains:
    - A finger table for routing (finger 0 is the successor)
    - A reference to its predecessor
    - A cache of descriptors for the peers it has heard about
    - The set of keys it owns

    This is the surface the request-handling layer calls into. Nothing
    in here listens on the network; remote peers are reached through
    the RemoteNodePort given at construction.
    """

    def __init__(self, name: str, address: str, port: int, remote: RemoteNodePort,
                 m: int = None, max_hops: int = None, cache_size: int = None,
                 node_id: int = None):
        """
        Initialize a Chord node.

        Args:
            name: Node name, part of the hashed identity
            address: Host other nodes use to reach us
            port: Port other nodes use to reach us
            remote: Transport used to reach other nodes
            m: Bit size of identifier space
            max_hops: Forwarding limit for lookups
            cache_size: Capacity of the descriptor cache
            node_id: Fixed ring id instead of the hashed identity
        """
        self.name = name
        self.space = IdentitySpace(config.M if m is None else m)
        self.m = self.space.bits

        if node_id is None:
            node_id = hash_node_id(name, address, port, self.m)
        else:
            self.space.validate(node_id)
        self.me = NodeDescriptor(node_id, address, port)
        self.node_id = node_id

        self.logger = logging.getLogger(f"ChordNode-{self.node_id}")
        self.logger.info(f"Initializing node {self.node_id} ({name}) at {self.me.endpoint}")

        self.remote = _SelfShortcutPort(self, remote)
        self.state = RingState(self.space, self.me, cache_size=cache_size)
        self.lookup = LookupEngine(self.state, self.remote, max_hops=max_hops)
        self.stabilizer = StabilizationProtocol(self.state, self.remote, self.lookup)

    def get_info(self) -> NodeDescriptor:
        """Get the descriptor for this node."""
        return self.me

    # ==================== Core Chord Operations ====================

    async def find_successor(self, ring_id: int, hops: int = 0) -> NodeDescriptor:
        return await self.lookup.find_successor(ring_id, hops)

    def closest_preceding_node(self, ring_id: int) -> NodeDescriptor:
        return self.lookup.closest_preceding_node(ring_id)

    def get_predecessor(self) -> Optional[NodeDescriptor]:
        return self.state.predecessor

    def get_successor(self) -> NodeDescriptor:
        return self.state.successor_descriptor()

    def notify(self, candidate: NodeDescriptor) -> bool:
        return self.stabilizer.notify(candidate)

    # ==================== Key Routing ====================

    async def add_key(self, key: int) -> NodeDescriptor:
        """
        Place key on the node that owns it.

        Returns:
            Descriptor of the node now holding the key
        """
        self.space.validate(key)
        owner = await self.find_successor(key)

        if owner.ring_id == self.node_id:
            return self.assign_key_local(key)

        self.logger.info(f"Key {key} belongs to {owner}, assigning remotely")
        return await self.remote.assign_key(owner, key)

    def assign_key_local(self, key: int) -> NodeDescriptor:
        """Take ownership of key; adding a key we already hold is a no-op."""
        self.space.validate(key)
        if self.state.add_key(key):
            self.logger.info(f"Now owning key {key}")
        return self.me

    def get_keys(self) -> List[int]:
        return self.state.keys()

    # ==================== Join and Maintenance ====================

    async def join(self, introducer: Optional[NodeDescriptor] = None) -> NodeDescriptor:
        """
        Join a Chord ring.

        Args:
            introducer: An existing node in the ring (None to create a new ring)
        """
        return await self.stabilizer.join(introducer)

    async def stabilize(self):
        await self.stabilizer.stabilize()

    async def fix_fingers(self) -> Optional[int]:
        return await self.stabilizer.fix_fingers()

    async def check_predecessor(self) -> bool:
        return await self.stabilizer.check_predecessor()

    # ==================== Utility Methods ====================

    @property
    def finger_table(self):
        return self.state.finger_table

    def get_status(self) -> Dict[str, Any]:
        """
        Get current node status.

        Returns:
            Dictionary with node state information
        """
        predecessor = self.state.predecessor
        return {
            "name": self.name,
            "node_id": self.node_id,
            "address": self.me.address,
            "port": self.me.port,
            "m": self.m,
            "ring_size": self.space.size,
            "successor": self.get_successor().to_dict(),
            "predecessor": predecessor.to_dict() if predecessor else None,
            "num_keys": len(self.state.keys()),
            "known_nodes": len(self.state.cache),
        }

    def __repr__(self) -> str:
        return f"ChordNode(id={self.node_id}, addr={self.me.endpoint})"


class _SelfShortcutPort(RemoteNodePort):
    """
    Serves calls addressed to the local node in-process and passes the
    rest to the real transport.

    Descriptors coming back from peers are checked against our ring; a
    peer that names an id outside it is treated like one that failed.
    """

    def __init__(self, node: ChordNode, transport: RemoteNodePort):
        self.node = node
        self.transport = transport

    def _is_local(self, target: NodeDescriptor) -> bool:
        return target.ring_id == self.node.node_id

    def _checked(self, target: NodeDescriptor, descriptor: NodeDescriptor) -> NodeDescriptor:
        if descriptor.ring_id not in self.node.space:
            raise TransportError(target, f"reply names id {descriptor.ring_id} outside the ring")
        return descriptor

    async def find_successor(self, target: NodeDescriptor, ring_id: int,
                             hops: int = 0) -> NodeDescriptor:
        if self._is_local(target):
            return await self.node.find_successor(ring_id, hops)
        return self._checked(target, await self.transport.find_successor(target, ring_id, hops))

    async def get_predecessor(self, target: NodeDescriptor) -> PredecessorReply:
        if self._is_local(target):
            return self.node.get_predecessor()
        reply = await self.transport.get_predecessor(target)
        if isinstance(reply, NodeDescriptor) and reply.ring_id not in self.node.space:
            self.node.logger.warning(f"{target} reported predecessor {reply} outside the ring")
            return UNREACHABLE
        return reply

    async def notify(self, target: NodeDescriptor,
                     candidate: NodeDescriptor) -> Union[bool, Reachability]:
        if self._is_local(target):
            self.node.notify(candidate)
            return True
        return await self.transport.notify(target, candidate)

    async def assign_key(self, target: NodeDescriptor, key: int) -> NodeDescriptor:
        if self._is_local(target):
            return self.node.assign_key_local(key)
        return self._checked(target, await self.transport.assign_key(target, key))

    async def health_check(self, target: NodeDescriptor) -> bool:
        if self._is_local(target):
            return True
        return await self.transport.health_check(target)
