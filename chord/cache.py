"""
Bounded id -> descriptor cache.
"""

import logging
from collections import OrderedDict
from typing import Callable, Iterable, List, Optional, Set

from .routing import NodeDescriptor


class DescriptorCache:
    """
    Maps ring ids to the descriptors of the peers that own them.

    Entries are kept in least-recently-used order and evicted once the
    cache grows past max_size. Ids reported by the pinned callback (self,
    successor, fingers, predecessor) are never evicted, so anything the
    node currently routes through stays resolvable.
    """

    def __init__(self, max_size: int, pinned: Callable[[], Iterable[int]] = None):
        if max_size < 1:
            raise ValueError("descriptor cache needs room for at least one entry")
        self.max_size = max_size
        self._pinned = pinned or (lambda: ())
        self._entries: "OrderedDict[int, NodeDescriptor]" = OrderedDict()
        self.logger = logging.getLogger("DescriptorCache")

    def put(self, descriptor: NodeDescriptor):
        """Add or refresh a descriptor; a newer one replaces the old for the same id."""
        self._entries[descriptor.ring_id] = descriptor
        self._entries.move_to_end(descriptor.ring_id)
        if len(self._entries) > self.max_size:
            self._evict()

    def get(self, ring_id: int) -> Optional[NodeDescriptor]:
        descriptor = self._entries.get(ring_id)
        if descriptor is not None:
            self._entries.move_to_end(ring_id)
        return descriptor

    def _evict(self):
        pinned: Set[int] = set(self._pinned())
        for ring_id in list(self._entries):
            if len(self._entries) <= self.max_size:
                break
            if ring_id in pinned:
                continue
            del self._entries[ring_id]
            self.logger.debug(f"Evicted descriptor {ring_id}")

    def prune(self, keep: Iterable[int]) -> int:
        """
        Drop every entry whose id is neither in keep nor pinned.

        Returns:
            Number of entries removed
        """
        keep_ids = set(keep) | set(self._pinned())
        stale = [ring_id for ring_id in self._entries if ring_id not in keep_ids]
        for ring_id in stale:
            del self._entries[ring_id]
        return len(stale)

    def ids(self) -> List[int]:
        return list(self._entries)

    def __contains__(self, ring_id: int) -> bool:
        return ring_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
