"""
Periodic maintenance that keeps successor, predecessor and fingers correct.
"""

import logging
from typing import Optional

from .lookup import LookupEngine
from .remote import UNREACHABLE, ChordError, RemoteNodePort
from .routing import NodeDescriptor
from .state import RingState


class StabilizationProtocol:
    """
    The Chord stabilize / notify / fix-fingers / check-predecessor routines.

    Every routine reads a local snapshot, awaits the remote call, and then
    reconciles against the current state rather than the snapshot. None of
    the periodic routines lets a transport failure escape, so one dead
    peer never stops later rounds.
    """

    def __init__(self, state: RingState, port: RemoteNodePort, lookup: LookupEngine):
        self.state = state
        self.port = port
        self.lookup = lookup
        self.next_finger = 0
        self.logger = logging.getLogger(f"Stabilizer-{state.node_id}")

    # ==================== Join ====================

    async def join(self, introducer: Optional[NodeDescriptor]) -> NodeDescriptor:
        """
        Join a Chord ring via a known node.

        n.join(n'):
            predecessor = nil
            successor = n'.find_successor(n)

        Without an introducer the node forms a singleton ring.

        Raises:
            TransportError: the introducer could not answer the lookup
        """
        state = self.state
        state.set_predecessor(None)

        if introducer is None or introducer.ring_id == state.node_id:
            state.reset_successor()
            self.logger.info("Created new Chord ring")
            return state.me

        state.remember(introducer)
        successor = await self.port.find_successor(introducer, state.node_id)
        state.set_successor(successor)
        self.logger.info(f"Joined ring via {introducer}: successor = {successor}")
        return successor

    # ==================== Stabilize ====================

    async def stabilize(self):
        """
        Verify our immediate successor and tell it about us.

        n.stabilize():
            x = successor.predecessor
            if x in (n, successor): successor = x
            successor.notify(n)

        An unreachable successor is treated as dead: we fall back to being
        our own successor until notify or fix-fingers heal the ring.
        """
        state = self.state
        me = state.me
        successor = state.successor_descriptor()

        x = await self.port.get_predecessor(successor)

        if x is UNREACHABLE:
            self.logger.warning(f"Successor {successor} unreachable, falling back to self")
            state.compare_and_set_successor(successor.ring_id, me)
            successor = state.successor_descriptor()
        elif x is not None:
            state.remember(x)
            current = state.successor_id()
            if (current == successor.ring_id
                    and state.space.in_open(state.node_id, current, x.ring_id)):
                if state.compare_and_set_successor(current, x):
                    self.logger.info(f"Stabilize: updated successor from {current} to {x}")
            successor = state.successor_descriptor()

        self.logger.debug(f"Notifying successor {successor} about self {me}")
        delivered = await self.port.notify(successor, me)

        if delivered is UNREACHABLE:
            self.logger.warning(f"Notify to {successor} failed, falling back to self")
            state.compare_and_set_successor(successor.ring_id, me)
            # Notifying ourselves never leaves the process
            await self.port.notify(state.successor_descriptor(), me)

    def notify(self, candidate: NodeDescriptor) -> bool:
        """
        candidate thinks it might be our predecessor.

        n.notify(n'):
            if predecessor is nil or n' in (predecessor, n):
                predecessor = n'

        n itself never lies in (predecessor, n), so we only adopt ourselves
        while there is no predecessor; a singleton ring becomes its own
        predecessor on its first stabilize.

        Returns:
            True if candidate became our predecessor
        """
        state = self.state
        if candidate.ring_id not in state.space:
            self.logger.warning(f"Ignoring notify from {candidate}: id outside the ring")
            return False

        predecessor = state.predecessor
        if predecessor is None or state.space.in_open(predecessor.ring_id, state.node_id,
                                                      candidate.ring_id):
            state.set_predecessor(candidate)
            self.logger.info(f"Updated predecessor to {candidate}")
            return True

        state.remember(candidate)
        return False

    # ==================== Fix fingers ====================

    async def fix_fingers(self) -> Optional[int]:
        """
        Refresh one finger table entry per call.

        n.fix_fingers():
            next = next + 1 (wrapping at m)
            finger[next] = find_successor(n + 2^next)

        Returns:
            The index that was refreshed, or None if the lookup failed
        """
        state = self.state
        table = state.finger_table

        self.next_finger = (self.next_finger + 1) % table.m
        index = self.next_finger
        start = table.get_start(index)

        try:
            node = await self.lookup.find_successor(start)
        except ChordError as e:
            self.logger.warning(f"Fix finger {index} (start={start}) failed: {e}")
            return None

        state.remember(node)
        table.set_target(index, node.ring_id)
        self.logger.debug(f"Fixed finger {index} -> {node}")

        if index == 0:
            # A full rotation has completed
            state.prune_cache()
        return index

    # ==================== Check predecessor ====================

    async def check_predecessor(self) -> bool:
        """
        Clear the predecessor if it no longer answers a health check.

        Returns:
            True if the predecessor was cleared
        """
        state = self.state
        predecessor = state.predecessor
        if predecessor is None or predecessor.ring_id == state.node_id:
            return False

        alive = await self.port.health_check(predecessor)
        if alive:
            return False

        if state.clear_predecessor_if(predecessor):
            self.logger.warning(f"Predecessor {predecessor} failed health check, cleared")
            return True
        return False
