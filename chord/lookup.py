"""
Successor lookup: the Chord find-successor / closest-preceding-node pair.
"""

import logging

import config
from .remote import LookupHopLimitExceeded, RemoteNodePort
from .routing import NodeDescriptor
from .state import RingState


class LookupEngine:
    """
    Resolves which node owns an identifier.

    Lookups are recursive across the ring: when the answer is not local,
    the query is handed to the closest preceding finger, which runs its
    own LookupEngine. Each forward carries a hop count so a transiently
    inconsistent ring cannot bounce a query forever.
    """

    def __init__(self, state: RingState, port: RemoteNodePort, max_hops: int = None):
        self.state = state
        self.port = port
        self.max_hops = config.MAX_LOOKUP_HOPS if max_hops is None else max_hops
        self.logger = logging.getLogger(f"Lookup-{state.node_id}")

    async def find_successor(self, ring_id: int, hops: int = 0) -> NodeDescriptor:
        """
        Find the successor node responsible for an identifier.

        n.find_successor(id):
            if id in (n, successor]: return successor
            n' = closest_preceding_node(id)
            if n' == n: return successor
            return n'.find_successor(id)

        Args:
            ring_id: The identifier to look up
            hops: How many nodes have already forwarded this query

        Returns:
            NodeDescriptor of the successor node

        Raises:
            ValueError: ring_id is outside the identifier space
            TransportError: the next hop could not be reached
            LookupHopLimitExceeded: the query was forwarded too many times
        """
        state = self.state
        state.space.validate(ring_id)

        node_id = state.node_id
        successor = state.successor_descriptor()

        # With ourselves as successor the fingers may still know live peers
        if (successor.ring_id != node_id
                and state.space.in_open_closed(node_id, successor.ring_id, ring_id)):
            return successor

        closest = self.closest_preceding_node(ring_id)
        if closest.ring_id == node_id:
            return successor

        if hops >= self.max_hops:
            raise LookupHopLimitExceeded(ring_id, hops)

        self.logger.debug(f"Forwarding lookup for {ring_id} to {closest} (hop {hops + 1})")
        answer = await self.port.find_successor(closest, ring_id, hops + 1)
        state.remember(answer)
        return answer

    def closest_preceding_node(self, ring_id: int) -> NodeDescriptor:
        """
        Search the local table for the highest predecessor of ring_id.

        Fingers are scanned from m-1 down to 0. A finger whose target is
        not in the descriptor cache is skipped for this round.

        Args:
            ring_id: The identifier to search for

        Returns:
            NodeDescriptor of the closest preceding node, or ourselves
        """
        state = self.state
        node_id = state.node_id
        table = state.finger_table

        for i in range(table.m - 1, -1, -1):
            target = table.get_target(i)
            if target is None:
                continue
            if not state.space.in_open(node_id, ring_id, target):
                continue
            descriptor = state.resolve(target)
            if descriptor is None:
                self.logger.debug(f"Skipping stale finger {i} -> {target}")
                continue
            return descriptor

        return state.me
