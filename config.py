"""
Configuration parameters for a Chord ring node.
"""

# Chord Parameters
M = 8  # Identifier space size: 2^M positions
IDENTIFIER_SPACE = 2 ** M
MAX_RING_BITS = 160  # SHA-1 digest width

# Network Parameters
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 5000
RPC_TIMEOUT = 3.0  # seconds
MAX_MESSAGE_SIZE = 64 * 1024  # bytes

# Stabilization Parameters
STABILIZE_INTERVAL = 1.0  # seconds
FIX_FINGERS_INTERVAL = 1.5  # seconds
CHECK_PREDECESSOR_INTERVAL = 1.5  # seconds

# Routing
MAX_LOOKUP_HOPS = 32
DESCRIPTOR_CACHE_SIZE = 1024

# Diagnostics
DASHBOARD_PORT = None  # disabled unless given on the command line

# Logging
LOG_LEVEL = "INFO"  # DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def validate_ring_bits(m: int) -> int:
    """Check that m can size an identifier ring."""
    if not isinstance(m, int) or isinstance(m, bool):
        raise ValueError(f"ring bits must be an integer, got {m!r}")
    if m < 1 or m > MAX_RING_BITS:
        raise ValueError(f"ring bits must be between 1 and {MAX_RING_BITS}, got {m}")
    return m


def describe():
    """Summarize the effective configuration."""
    return {
        "m": M,
        "ring_size": IDENTIFIER_SPACE,
        "stabilize_interval": STABILIZE_INTERVAL,
        "fix_fingers_interval": FIX_FINGERS_INTERVAL,
        "check_predecessor_interval": CHECK_PREDECESSOR_INTERVAL,
        "rpc_timeout": RPC_TIMEOUT,
        "max_lookup_hops": MAX_LOOKUP_HOPS,
        "descriptor_cache_size": DESCRIPTOR_CACHE_SIZE,
    }


if __name__ == "__main__":
    settings = describe()
    print("Chord Configuration:")
    print(f"  Identifier Space: 2^{settings['m']} = {settings['ring_size']}")
    print(f"  Stabilize every {settings['stabilize_interval']}s")
    print(f"  Fix fingers every {settings['fix_fingers_interval']}s")
    print(f"  Check predecessor every {settings['check_predecessor_interval']}s")
    print(f"  RPC timeout: {settings['rpc_timeout']}s")
    print(f"  Max lookup hops: {settings['max_lookup_hops']}")
    print(f"  Descriptor cache size: {settings['descriptor_cache_size']}")
