"""
Main entry point for a Chord ring node.
"""

import asyncio
import argparse
import logging
import socket
import sys

from chord.maintenance import Maintenance
from chord.node import ChordNode
from chord.remote import TransportError
from chord.routing import NodeDescriptor
from chord.space import hash_node_id
from communication.handlers import register_chord_handlers
from communication.network import NetworkManager
from communication.remote_port import NetworkRemotePort
import config


def advertised_host(host: str) -> str:
    """The host other nodes should use to reach a server bound to host."""
    if host in ('0.0.0.0', ''):
        return socket.gethostname()
    return host


async def run_node(args):
    """
    Run a Chord node.

    Args:
        args: Command-line arguments
    """
    logger = logging.getLogger("Main")

    address = advertised_host(args.advertise or args.host)
    node_id = hash_node_id(args.name, address, args.port, args.m)

    network = NetworkManager(node_id, args.host, args.port)
    remote = NetworkRemotePort(network, NodeDescriptor(node_id, address, args.port),
                               timeout=args.rpc_timeout)
    node = ChordNode(args.name, address, args.port, remote, m=args.m, node_id=node_id,
                     max_hops=args.max_hops)
    logger.info(f"Node ID: {node.node_id}")

    register_chord_handlers(network, node)
    await network.start()

    dashboard = None
    maintenance = Maintenance(
        node,
        stabilize_interval=args.stabilize_interval,
        fix_fingers_interval=args.fix_fingers_interval,
        check_predecessor_interval=args.check_predecessor_interval,
    )

    try:
        if args.join:
            logger.info(f"Joining existing ring via {args.join}")
            introducer = await remote.identify(args.join)
            await node.join(introducer)
        else:
            await node.join(None)
        logger.info(f"Successor: {node.get_successor()}")

        if args.dashboard_port is not None:
            from dashboard.server import serve_dashboard
            dashboard = serve_dashboard(node, args.host, args.dashboard_port,
                                        loop=asyncio.get_running_loop())

        maintenance.start()
        logger.info("Node is running. Press Ctrl+C to stop.")

        # Wait forever (until interrupted)
        await asyncio.Event().wait()
    finally:
        await maintenance.stop()
        if dashboard is not None:
            dashboard.stop()
        await network.stop()
        logger.info("Node stopped")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Chord Ring Node')

    # Node configuration
    parser.add_argument('--name', type=str, default='node',
                        help='Node name, hashed into the ring id (default: node)')
    parser.add_argument('--host', type=str, default=config.DEFAULT_HOST,
                        help=f'Host to bind to (default: {config.DEFAULT_HOST})')
    parser.add_argument('--advertise', type=str, default=None,
                        help='Host other nodes use to reach us (default: --host)')
    parser.add_argument('--port', type=int, default=config.DEFAULT_PORT,
                        help=f'Port to listen on (default: {config.DEFAULT_PORT})')
    parser.add_argument('--join', type=str, default=None,
                        help='Address of existing node to join (host:port)')

    # Chord parameters
    parser.add_argument('--m', type=int, default=config.M,
                        help=f'Identifier space bits (default: {config.M})')
    parser.add_argument('--max-hops', type=int, default=config.MAX_LOOKUP_HOPS,
                        help=f'Lookup forwarding limit (default: {config.MAX_LOOKUP_HOPS})')
    parser.add_argument('--rpc-timeout', type=float, default=config.RPC_TIMEOUT,
                        help=f'Timeout for remote calls in seconds (default: {config.RPC_TIMEOUT})')
    parser.add_argument('--stabilize-interval', type=float, default=config.STABILIZE_INTERVAL)
    parser.add_argument('--fix-fingers-interval', type=float, default=config.FIX_FINGERS_INTERVAL)
    parser.add_argument('--check-predecessor-interval', type=float,
                        default=config.CHECK_PREDECESSOR_INTERVAL)

    # Diagnostics
    parser.add_argument('--dashboard-port', type=int, default=config.DASHBOARD_PORT,
                        help='Serve the HTTP dashboard on this port (default: off)')

    # Logging
    parser.add_argument('--log-level', type=str, default=config.LOG_LEVEL,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help=f'Logging level (default: {config.LOG_LEVEL})')
    return parser


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config.validate_ring_bits(args.m)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format=config.LOG_FORMAT
    )

    print("=" * 60)
    print("Chord Ring Node")
    print("=" * 60)
    print(f"Name: {args.name}")
    print(f"Address: {args.host}:{args.port}")
    print(f"Identifier Space: 2^{args.m} = {2 ** args.m}")
    if args.join:
        print(f"Joining via: {args.join}")
    else:
        print("Creating new ring")
    print("=" * 60 + "\n")

    try:
        asyncio.run(run_node(args))
    except KeyboardInterrupt:
        print("\nExiting...")
    except TransportError as e:
        print(f"Error: could not join the ring: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
