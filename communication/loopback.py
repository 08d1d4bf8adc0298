"""
In-process transport: nodes of one event loop calling each other directly.

Used to run whole rings inside a single process, with failures injected
by marking nodes as down.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Dict, Set, Union

from chord.remote import (UNREACHABLE, PredecessorReply, Reachability, RemoteNodePort,
                          TransportError)
from chord.routing import NodeDescriptor

if TYPE_CHECKING:
    from chord.node import ChordNode


class LoopbackNetwork:
    """
    Registry of the nodes that share one in-process ring.
    """

    def __init__(self):
        self.nodes: Dict[int, "ChordNode"] = {}
        self.down: Set[int] = set()
        self.forwarded_lookups = 0
        self.logger = logging.getLogger("LoopbackNetwork")

    def port(self) -> "LoopbackRemotePort":
        return LoopbackRemotePort(self)

    def attach(self, node: "ChordNode") -> "ChordNode":
        self.nodes[node.node_id] = node
        return node

    def detach(self, ring_id: int):
        self.nodes.pop(ring_id, None)
        self.down.discard(ring_id)

    def fail(self, ring_id: int):
        """Make a node unreachable until heal() is called."""
        self.down.add(ring_id)
        self.logger.info(f"Node {ring_id} marked down")

    def heal(self, ring_id: int):
        self.down.discard(ring_id)
        self.logger.info(f"Node {ring_id} marked up")

    def reachable(self, target: NodeDescriptor) -> "ChordNode":
        """The live node behind target, or TransportError."""
        if target.ring_id in self.down:
            raise TransportError(target, "node is down")
        node = self.nodes.get(target.ring_id)
        if node is None:
            raise TransportError(target, "no such node")
        return node


class LoopbackRemotePort(RemoteNodePort):
    """RemoteNodePort that calls straight into nodes of a LoopbackNetwork."""

    def __init__(self, network: LoopbackNetwork):
        self.network = network

    async def find_successor(self, target: NodeDescriptor, ring_id: int,
                             hops: int = 0) -> NodeDescriptor:
        await asyncio.sleep(0)
        node = self.network.reachable(target)
        self.network.forwarded_lookups += 1
        return await node.find_successor(ring_id, hops)

    async def get_predecessor(self, target: NodeDescriptor) -> PredecessorReply:
        await asyncio.sleep(0)
        try:
            node = self.network.reachable(target)
        except TransportError:
            return UNREACHABLE
        return node.get_predecessor()

    async def notify(self, target: NodeDescriptor,
                     candidate: NodeDescriptor) -> Union[bool, Reachability]:
        await asyncio.sleep(0)
        try:
            node = self.network.reachable(target)
        except TransportError:
            return UNREACHABLE
        node.notify(candidate)
        return True

    async def assign_key(self, target: NodeDescriptor, key: int) -> NodeDescriptor:
        await asyncio.sleep(0)
        return self.network.reachable(target).assign_key_local(key)

    async def health_check(self, target: NodeDescriptor) -> bool:
        await asyncio.sleep(0)
        try:
            self.network.reachable(target)
        except TransportError:
            return False
        return True
