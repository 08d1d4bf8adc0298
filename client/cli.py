"""
Command-line client for interacting with a Chord ring.
"""

import asyncio
from typing import Dict, List, Optional

from communication.message import (Message, MessageType, create_find_successor_msg,
                                   create_key_msg, create_request_msg)
from communication.network import NetworkManager
from chord.routing import NodeDescriptor
import config

CLIENT_DESCRIPTOR = NodeDescriptor(0, "client", 0)


class ChordClient:
    """
    Client for issuing commands to a Chord ring.

    The client never joins the ring; it only sends requests to a node.
    """

    def __init__(self, node_address: str, timeout: float = config.RPC_TIMEOUT):
        """
        Initialize client.

        Args:
            node_address: Address of a Chord node to connect to
            timeout: Per-request timeout in seconds
        """
        self.node_address = node_address
        self.timeout = timeout
        self.network = NetworkManager(node_id=CLIENT_DESCRIPTOR.ring_id, host='localhost', port=0)

    async def _request(self, msg: Message, expected: MessageType,
                       address: str = None) -> Optional[Dict]:
        target = address or self.node_address
        response = await self.network.send_message(
            target, msg, wait_response=True, timeout=self.timeout
        )

        if response is None:
            print(f"✗ No response from {target}")
            return None
        if response.msg_type == MessageType.ERROR:
            print(f"✗ {target} failed: {response.data.get('error', 'Unknown error')}")
            return None
        if response.msg_type != expected:
            print(f"✗ Unexpected response type {response.msg_type}")
            return None
        return response.data

    async def lookup(self, ring_id: int) -> Optional[Dict]:
        """
        Ask the ring which node owns ring_id.

        Returns:
            Descriptor dict of the owner, or None
        """
        msg = create_find_successor_msg(CLIENT_DESCRIPTOR, ring_id, 0,
                                        self.network.generate_msg_id())
        data = await self._request(msg, MessageType.FIND_SUCCESSOR_REPLY)
        if data is None:
            return None

        successor = data.get('successor')
        print(f"✓ successor({ring_id}) = Node {successor['ring_id']} "
              f"({successor['address']}:{successor['port']})")
        return successor

    async def add_key(self, key: int) -> Optional[Dict]:
        """
        Place key on the ring.

        Returns:
            Descriptor dict of the node now owning the key, or None
        """
        msg = create_key_msg(CLIENT_DESCRIPTOR, MessageType.ADD_KEY, key,
                             self.network.generate_msg_id())
        data = await self._request(msg, MessageType.ADD_KEY_REPLY)
        if data is None:
            return None

        owner = data.get('owner')
        print(f"✓ key {key} stored on Node {owner['ring_id']} ({owner['address']}:{owner['port']})")
        return owner

    async def ring_info(self, node_address: str = None) -> Optional[Dict]:
        """Status and finger table of one node."""
        msg = create_request_msg(CLIENT_DESCRIPTOR.ring_id, "client",
                                 MessageType.GET_RING_INFO, self.network.generate_msg_id())
        return await self._request(msg, MessageType.GET_RING_INFO_REPLY, node_address)

    async def get_keys(self, node_address: str = None) -> Optional[List[int]]:
        """Keys owned by one node."""
        msg = create_request_msg(CLIENT_DESCRIPTOR.ring_id, "client",
                                 MessageType.GET_KEYS, self.network.generate_msg_id())
        data = await self._request(msg, MessageType.GET_KEYS_REPLY, node_address)
        if data is None:
            return None
        return data.get('keys', [])

    async def walk_ring(self, max_nodes: int = 256) -> List[Dict]:
        """
        Discover the ring by following successor pointers from the connected node.

        Stops when the walk comes back to a node already seen, when a node
        does not answer, or after max_nodes nodes.

        Returns:
            Ring info of each node visited, in ring order
        """
        visited = []
        seen = set()
        address = self.node_address

        while len(visited) < max_nodes:
            info = await self.ring_info(address)
            if info is None or info['node_id'] in seen:
                break
            seen.add(info['node_id'])
            visited.append(info)

            successor = info['successor']
            address = f"{successor['address']}:{successor['port']}"

        return visited

    async def show_ring(self):
        nodes = await self.walk_ring()
        if not nodes:
            print("Failed to discover ring topology")
            return

        m = nodes[0].get('m', config.M)
        print(f"\n{'='*60}")
        print(f"Ring Topology (M={m}, size={2 ** m}, nodes={len(nodes)})")
        print(f"{'='*60}")
        for n in nodes:
            pred = n.get('predecessor')
            pred_str = f"pred={pred['ring_id']}" if pred else "pred=None"
            succ_str = f"succ={n['successor']['ring_id']}"
            print(f"  Node {n['node_id']:5d} ({n['address']}:{n['port']}) - "
                  f"{pred_str}, {succ_str}, keys={n['num_keys']}")
        print(f"{'='*60}\n")

    async def show_fingers(self, node_address: str = None):
        info = await self.ring_info(node_address)
        if info is None:
            return

        print(f"\nFinger table of Node {info['node_id']}")
        print(f"{'i':>3} {'start':>8} {'interval':>20} {'target':>8}")
        for finger in info['fingers']:
            lo, hi = finger['interval']
            target = finger['target'] if finger['target'] is not None else '-'
            print(f"{finger['index']:>3} {finger['start']:>8} {f'[{lo}, {hi})':>20} {target:>8}")
        print()

    async def show_keys(self, node_address: str = None):
        keys = await self.get_keys(node_address)
        if keys is None:
            return
        target = node_address or self.node_address
        print(f"Keys on {target}: {keys if keys else 'none'} (total {len(keys)})")

    def print_help(self):
        print("Commands:")
        print("  lookup <id>           - Find the node owning an id")
        print("  add <key>             - Place an integer key on the ring")
        print("  ring                  - Show ring topology")
        print("  fingers [host:port]   - Show a node's finger table")
        print("  keys [host:port]      - Show keys owned by a node")
        print("  quit                  - Exit")

    async def run_interactive(self):
        """Run interactive command-line interface."""
        print("\n" + "="*60)
        print("Chord Ring Client")
        print("="*60)
        self.print_help()
        print("="*60 + "\n")

        loop = asyncio.get_running_loop()
        while True:
            try:
                command = (await loop.run_in_executor(None, input, "> ")).strip()
            except (EOFError, KeyboardInterrupt):
                print()
                break

            if not command:
                continue

            parts = command.split()
            cmd = parts[0].lower()

            try:
                if cmd in ("quit", "exit"):
                    break
                elif cmd == "lookup" and len(parts) == 2:
                    await self.lookup(int(parts[1]))
                elif cmd == "add" and len(parts) == 2:
                    await self.add_key(int(parts[1]))
                elif cmd == "help":
                    self.print_help()
                elif cmd == "ring":
                    await self.show_ring()
                elif cmd == "fingers":
                    await self.show_fingers(parts[1] if len(parts) > 1 else None)
                elif cmd == "keys":
                    await self.show_keys(parts[1] if len(parts) > 1 else None)
                else:
                    print(f"Unknown command: {command}")
                    print("Type 'help' for available commands")
            except ValueError as e:
                print(f"Error: {e}")


async def main():
    """Main entry point for client."""
    import argparse

    parser = argparse.ArgumentParser(description='Chord Ring Client')
    parser.add_argument('--node', type=str, default=f'localhost:{config.DEFAULT_PORT}',
                        help=f'Chord node address (default: localhost:{config.DEFAULT_PORT})')
    parser.add_argument('--lookup', type=int, metavar='ID',
                        help='Find the owner of an id and exit')
    parser.add_argument('--add', type=int, metavar='KEY',
                        help='Place a key on the ring and exit')
    parser.add_argument('--ring', action='store_true',
                        help='Show ring topology and exit')

    args = parser.parse_args()

    client = ChordClient(args.node)

    # Non-interactive mode
    if args.lookup is not None:
        await client.lookup(args.lookup)
    elif args.add is not None:
        await client.add_key(args.add)
    elif args.ring:
        await client.show_ring()

    # Interactive mode
    else:
        await client.run_interactive()


if __name__ == "__main__":
    asyncio.run(main())
