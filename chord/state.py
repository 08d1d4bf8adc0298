"""
The mutable ring state owned by a single Chord node.
"""

import logging
from typing import List, Optional, Set

import config
from .cache import DescriptorCache
from .routing import FingerTable, NodeDescriptor
from .space import IdentitySpace


class RingState:
    """
    Successor, predecessor, fingers, descriptor cache and owned keys.

    The node runs on one asyncio event loop, so every method here runs
    without interleaving. Callers must never hold a snapshot across an
    await and write it back blindly; compare_and_set_successor exists for
    reconciling after a remote call.
    """

    def __init__(self, space: IdentitySpace, me: NodeDescriptor,
                 cache_size: int = None):
        self.space = space
        self.me = me
        self.node_id = space.validate(me.ring_id)
        self.logger = logging.getLogger(f"RingState-{self.node_id}")

        self.finger_table = FingerTable(space, self.node_id)
        self._predecessor: Optional[NodeDescriptor] = None
        self._keys: Set[int] = set()

        if cache_size is None:
            cache_size = config.DESCRIPTOR_CACHE_SIZE
        self.cache = DescriptorCache(cache_size, pinned=self.referenced_ids)
        self.cache.put(me)

    # ==================== Descriptor cache ====================

    def remember(self, descriptor: NodeDescriptor) -> NodeDescriptor:
        """Cache a descriptor we have just heard about."""
        self.cache.put(descriptor)
        return descriptor

    def resolve(self, ring_id: Optional[int]) -> Optional[NodeDescriptor]:
        if ring_id is None:
            return None
        if ring_id == self.node_id:
            return self.me
        return self.cache.get(ring_id)

    def referenced_ids(self) -> Set[int]:
        """Ids the node currently routes through; these must stay resolvable."""
        ids = {self.node_id}
        ids.update(t for t in self.finger_table.targets() if t is not None)
        predecessor = self._predecessor
        if predecessor is not None:
            ids.add(predecessor.ring_id)
        return ids

    def prune_cache(self) -> int:
        """Forget descriptors that no pointer refers to any more."""
        removed = self.cache.prune(self.referenced_ids())
        if removed:
            self.logger.debug(f"Pruned {removed} unreferenced descriptors")
        return removed

    # ==================== Successor ====================

    def successor_id(self) -> int:
        return self.finger_table.successor()

    def successor_descriptor(self) -> NodeDescriptor:
        """
        Descriptor of the immediate successor.

        Falls back to ourselves if the successor id cannot be resolved,
        which only happens if the cache lost an entry it should have pinned.
        """
        successor = self.resolve(self.finger_table.successor())
        if successor is None:
            self.logger.warning(f"Successor {self.finger_table.successor()} unresolvable, using self")
            return self.me
        return successor

    def set_successor(self, descriptor: NodeDescriptor):
        self.finger_table.set_successor(descriptor.ring_id)
        self.remember(descriptor)

    def compare_and_set_successor(self, expected_id: int, descriptor: NodeDescriptor) -> bool:
        """Replace the successor only if it is still expected_id."""
        replaced = self.finger_table.compare_and_set(0, expected_id, descriptor.ring_id)
        self.remember(descriptor)
        return replaced

    def reset_successor(self):
        """Fall back to a singleton view: we are our own successor."""
        self.finger_table.set_successor(self.node_id)

    # ==================== Predecessor ====================

    @property
    def predecessor(self) -> Optional[NodeDescriptor]:
        return self._predecessor

    def set_predecessor(self, descriptor: Optional[NodeDescriptor]):
        self._predecessor = descriptor
        if descriptor is not None:
            self.remember(descriptor)

    def clear_predecessor_if(self, expected: NodeDescriptor) -> bool:
        """Clear the predecessor only if it is still expected."""
        if self._predecessor is None or self._predecessor != expected:
            return False
        self._predecessor = None
        return True

    # ==================== Keys ====================

    def add_key(self, key: int) -> bool:
        """
        Take ownership of key.

        Returns:
            True if the key was new
        """
        if key in self._keys:
            return False
        self._keys.add(key)
        return True

    def has_key(self, key: int) -> bool:
        return key in self._keys

    def keys(self) -> List[int]:
        return sorted(self._keys)

    def __repr__(self) -> str:
        return (f"RingState(node={self.node_id}, succ={self.successor_id()}, "
                f"pred={self._predecessor}, keys={len(self._keys)})")
