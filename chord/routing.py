"""
Node descriptors and the finger table used for routing in Chord.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .space import IdentitySpace


@dataclass(frozen=True, order=True)
class NodeDescriptor:
    """
    Identity of a Chord node: ring id plus where to reach it.

    Equality, hashing and ordering only look at the ring id.
    """
    ring_id: int
    address: str = field(default="", compare=False)
    port: int = field(default=0, compare=False)

    @property
    def endpoint(self) -> str:
        """Network endpoint as "host:port"."""
        return f"{self.address}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        return {"ring_id": self.ring_id, "address": self.address, "port": self.port}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["NodeDescriptor"]:
        """Build a descriptor from its wire form; None stays None."""
        if not data:
            return None
        return cls(int(data["ring_id"]), data.get("address", ""), int(data.get("port", 0)))

    def __repr__(self) -> str:
        return f"Node({self.ring_id}, {self.endpoint})"


class FingerEntry:
    """
    One finger: a fixed start and interval, and a mutable target id.
    """

    __slots__ = ("index", "start", "interval", "target")

    def __init__(self, index: int, start: int, interval: Tuple[int, int],
                 target: Optional[int] = None):
        self.index = index
        self.start = start
        self.interval = interval
        self.target = target

    def __repr__(self) -> str:
        lo, hi = self.interval
        return f"Finger[{self.index}](start={self.start}, interval=[{lo}, {hi}), target={self.target})"


class FingerTable:
    """
    Finger table for routing in Chord.

    Entry i of node n starts at (n + 2^i) mod 2^m and covers the interval
    [start_i, start_{i+1}), with the last interval closing at start_0 so the
    intervals partition the ring. Only the targets ever change; entry 0's
    target is the immediate successor.
    """

    def __init__(self, space: IdentitySpace, node_id: int):
        """
        Initialize finger table for a node.

        Args:
            space: Identifier space the node lives in
            node_id: This node's identifier
        """
        self.space = space
        self.node_id = space.validate(node_id)
        self.m = space.bits

        starts = [space.finger_start(node_id, i) for i in range(self.m)]
        self._entries: List[FingerEntry] = [
            FingerEntry(i, starts[i], (starts[i], starts[(i + 1) % self.m]))
            for i in range(self.m)
        ]

        # A fresh node is its own successor
        self._entries[0].target = node_id

    def _check_index(self, index: int):
        if not 0 <= index < self.m:
            raise IndexError(f"finger index {index} outside [0, {self.m})")

    def get_start(self, index: int) -> int:
        self._check_index(index)
        return self._entries[index].start

    def get_interval(self, index: int) -> Tuple[int, int]:
        self._check_index(index)
        return self._entries[index].interval

    def get_target(self, index: int) -> Optional[int]:
        self._check_index(index)
        return self._entries[index].target

    def set_target(self, index: int, ring_id: Optional[int]):
        self._check_index(index)
        self._entries[index].target = ring_id

    def compare_and_set(self, index: int, expected: Optional[int], ring_id: Optional[int]) -> bool:
        """
        Write ring_id into finger index only if it still holds expected.

        Returns:
            True if the target was replaced
        """
        self._check_index(index)
        entry = self._entries[index]
        if entry.target != expected:
            return False
        entry.target = ring_id
        return True

    def successor(self) -> int:
        """Immediate successor id (finger 0)."""
        return self._entries[0].target

    def set_successor(self, ring_id: int):
        self._entries[0].target = ring_id

    def targets(self) -> List[Optional[int]]:
        return [entry.target for entry in self._entries]

    def entries(self) -> List[FingerEntry]:
        """Snapshot copy of every entry."""
        return [FingerEntry(e.index, e.start, e.interval, e.target) for e in self._entries]

    def to_list(self) -> List[Dict[str, Any]]:
        """Finger table as plain dicts, for diagnostics."""
        return [
            {
                "index": e.index,
                "start": e.start,
                "interval": list(e.interval),
                "target": e.target,
            }
            for e in self._entries
        ]

    def __len__(self) -> int:
        return self.m

    def __repr__(self) -> str:
        entries = [f"  [{e.index}] start={e.start} -> {e.target}"
                   for e in self._entries if e.target is not None]
        entries_str = "\n".join(entries) if entries else "  (empty)"
        return f"FingerTable for Node {self.node_id}:\n{entries_str}"
