"""
Modular identifier arithmetic for the Chord ring.
"""

import hashlib

import config


def in_range(identifier: int, start: int, end: int,
             inclusive_start: bool = False, inclusive_end: bool = True) -> bool:
    """
    Check if identifier is in range on the circular identifier space.

    When start == end the interval is a full lap around the ring: every
    identifier is inside, except start itself when both ends are open.

    Args:
        identifier: The identifier to check
        start: Start of range
        end: End of range
        inclusive_start: Include start in range
        inclusive_end: Include end in range

    Returns:
        True if identifier is in range
    """
    if start == end:
        if inclusive_start or inclusive_end:
            return True
        return identifier != start

    if start < end:
        # Normal range
        if inclusive_start and inclusive_end:
            return start <= identifier <= end
        elif inclusive_start and not inclusive_end:
            return start <= identifier < end
        elif not inclusive_start and inclusive_end:
            return start < identifier <= end
        else:  # not inclusive_start and not inclusive_end
            return start < identifier < end
    else:
        # Wraparound range: [start, max] joined with [0, end]
        if inclusive_start and inclusive_end:
            return identifier >= start or identifier <= end
        elif inclusive_start and not inclusive_end:
            return identifier >= start or identifier < end
        elif not inclusive_start and inclusive_end:
            return identifier > start or identifier <= end
        else:  # not inclusive_start and not inclusive_end
            return identifier > start or identifier < end


class IdentitySpace:
    """
    The ring [0, 2^m) of identifiers with wraparound arithmetic.

    Every interval test used by routing and stabilization goes through
    this class so the endpoint semantics live in one place.
    """

    def __init__(self, bits: int = None):
        if bits is None:
            bits = config.M
        self.bits = config.validate_ring_bits(bits)
        self.size = 2 ** self.bits

    def validate(self, identifier: int) -> int:
        """Return identifier if it belongs to this ring, else raise ValueError."""
        if not isinstance(identifier, int) or isinstance(identifier, bool):
            raise ValueError(f"identifier must be an integer, got {identifier!r}")
        if not 0 <= identifier < self.size:
            raise ValueError(f"identifier {identifier} outside ring [0, {self.size})")
        return identifier

    def wrap(self, value: int) -> int:
        return value % self.size

    def finger_start(self, node_id: int, index: int) -> int:
        """start_i = (n + 2^i) mod 2^m"""
        return (node_id + 2 ** index) % self.size

    def in_open(self, lo: int, hi: int, x: int) -> bool:
        """x in (lo, hi)"""
        return in_range(x, lo, hi, inclusive_start=False, inclusive_end=False)

    def in_open_closed(self, lo: int, hi: int, x: int) -> bool:
        """x in (lo, hi]"""
        return in_range(x, lo, hi, inclusive_start=False, inclusive_end=True)

    def in_closed_open(self, lo: int, hi: int, x: int) -> bool:
        """x in [lo, hi)"""
        return in_range(x, lo, hi, inclusive_start=True, inclusive_end=False)

    def __contains__(self, identifier) -> bool:
        return isinstance(identifier, int) and 0 <= identifier < self.size

    def __eq__(self, other) -> bool:
        return isinstance(other, IdentitySpace) and self.bits == other.bits

    def __hash__(self) -> int:
        return hash(self.bits)

    def __repr__(self) -> str:
        return f"IdentitySpace(m={self.bits}, size={self.size})"


def hash_node_id(name: str, address: str, port: int, bits: int = None) -> int:
    """
    Hash a node's identity to a ring identifier.

    The SHA-1 digest of "name:address:port" (or "name:port" without an
    address) is read as a big-endian unsigned integer and reduced to its
    low `bits` bits.

    Args:
        name: Node name
        address: Host the node is reachable at, may be empty
        port: Port the node listens on
        bits: Bit size of identifier space

    Returns:
        Integer identifier in range [0, 2^bits)
    """
    if bits is None:
        bits = config.M
    config.validate_ring_bits(bits)

    if address:
        node_info = f"{name}:{address}:{port}"
    else:
        node_info = f"{name}:{port}"

    hash_bytes = hashlib.sha1(node_info.encode("utf-8")).digest()
    hash_int = int.from_bytes(hash_bytes, byteorder="big")
    return hash_int % (2 ** bits)
