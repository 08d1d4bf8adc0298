"""
Tests for join, stabilize, notify, fix-fingers and check-predecessor.

Rings run in-process over a LoopbackNetwork; failures are injected by
marking nodes as down.
"""

import pytest

from chord.node import ChordNode
from chord.remote import UNREACHABLE, RemoteNodePort, TransportError
from chord.routing import NodeDescriptor
from communication.loopback import LoopbackNetwork


def make_node(network, ring_id, m=4):
    node = ChordNode(f"n{ring_id}", "loopback", 7000 + ring_id, network.port(),
                     m=m, node_id=ring_id)
    return network.attach(node)


async def run_rounds(network, nodes, rounds):
    """Run check_predecessor and stabilize on every node that is up."""
    for _ in range(rounds):
        for node in nodes:
            if node.node_id in network.down:
                continue
            await node.check_predecessor()
            await node.stabilize()


def ring_of(node):
    return node.state.successor_id(), node.get_predecessor().ring_id


class StubPort(RemoteNodePort):
    """A peer transport whose replies are set per test."""

    def __init__(self):
        self.predecessor_reply = None
        self.notify_reply = True
        self.on_get_predecessor = None
        self.notified = []
        self.lookup_error = None

    async def find_successor(self, target, ring_id, hops=0):
        raise self.lookup_error or TransportError(target, "down")

    async def get_predecessor(self, target):
        if self.on_get_predecessor is not None:
            self.on_get_predecessor()
        return self.predecessor_reply

    async def notify(self, target, candidate):
        self.notified.append(target.ring_id)
        return self.notify_reply

    async def assign_key(self, target, key):
        raise TransportError(target, "down")

    async def health_check(self, target):
        return False


def peer(ring_id):
    return NodeDescriptor(ring_id, "localhost", 6000 + ring_id)


class TestJoin:
    """Test creating and joining a ring."""

    @pytest.mark.asyncio
    async def test_create_ring(self):
        network = LoopbackNetwork()
        node = make_node(network, 5)

        await node.join(None)

        assert node.get_successor() == node.me
        assert node.get_predecessor() is None

        await node.stabilize()

        assert node.get_successor() == node.me
        assert node.get_predecessor() == node.me
        assert not await node.check_predecessor()

    @pytest.mark.asyncio
    async def test_join_via_self_is_create(self):
        network = LoopbackNetwork()
        node = make_node(network, 5)
        await node.join(node.me)
        assert node.get_successor() == node.me

    @pytest.mark.asyncio
    async def test_join_sets_successor(self):
        network = LoopbackNetwork()
        a = make_node(network, 3)
        b = make_node(network, 10)

        await a.join(None)
        await b.join(a.me)

        assert b.get_successor() == a.me
        assert b.get_predecessor() is None

    @pytest.mark.asyncio
    async def test_join_via_dead_introducer(self):
        network = LoopbackNetwork()
        a = make_node(network, 3)
        b = make_node(network, 10)
        network.fail(3)

        with pytest.raises(TransportError):
            await b.join(a.me)


class TestTwoNodeRing:
    """Two nodes must converge whichever one creates the ring."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("first,second", [(3, 10), (10, 3)])
    async def test_convergence(self, first, second):
        network = LoopbackNetwork()
        a = make_node(network, first)
        b = make_node(network, second)

        await a.join(None)
        await b.join(a.me)
        await run_rounds(network, [a, b], 3)

        assert ring_of(a) == (second, second)
        assert ring_of(b) == (first, first)

    @pytest.mark.asyncio
    async def test_key_placement_is_idempotent(self):
        network = LoopbackNetwork()
        a = make_node(network, 3)
        b = make_node(network, 10)
        await a.join(None)
        await b.join(a.me)
        await run_rounds(network, [a, b], 3)

        owner = await a.add_key(7)
        assert owner == b.me
        assert (await a.add_key(7)) == b.me
        assert b.get_keys() == [7]
        assert a.get_keys() == []

        # 12 wraps past 15 to node 3
        assert (await b.add_key(12)) == a.me
        assert a.get_keys() == [12]

    @pytest.mark.asyncio
    async def test_add_key_out_of_range(self):
        network = LoopbackNetwork()
        a = make_node(network, 3)
        await a.join(None)
        with pytest.raises(ValueError):
            await a.add_key(16)


class TestFailureRecovery:
    """A three-node ring loses its middle node and gets it back."""

    async def build(self):
        network = LoopbackNetwork()
        a, b, c = (make_node(network, ring_id) for ring_id in (2, 6, 11))
        await a.join(None)
        await b.join(a.me)
        await c.join(a.me)
        await run_rounds(network, [a, b, c], 5)
        return network, a, b, c

    @pytest.mark.asyncio
    async def test_three_node_convergence(self):
        network, a, b, c = await self.build()

        assert ring_of(a) == (6, 11)
        assert ring_of(b) == (11, 2)
        assert ring_of(c) == (2, 6)

    @pytest.mark.asyncio
    async def test_ring_closes_around_failed_node(self):
        network, a, b, c = await self.build()

        network.fail(6)
        await run_rounds(network, [a, b, c], 4)

        assert ring_of(a) == (11, 11)
        assert ring_of(c) == (2, 2)
        assert (await a.find_successor(5)) == c.me

    @pytest.mark.asyncio
    async def test_healed_node_rejoins(self):
        network, a, b, c = await self.build()

        network.fail(6)
        await run_rounds(network, [a, b, c], 4)
        network.heal(6)
        await run_rounds(network, [a, b, c], 4)

        assert ring_of(a) == (6, 11)
        assert ring_of(b) == (11, 2)
        assert ring_of(c) == (2, 6)


class TestFailOverRouting:
    """A node that fell back to itself still routes through its fingers."""

    @pytest.mark.asyncio
    async def test_lookup_uses_fingers_after_fail_over(self):
        network = LoopbackNetwork()
        nodes = [make_node(network, ring_id) for ring_id in (2, 3, 9, 13)]
        a = nodes[0]
        await a.join(None)
        for node in nodes[1:]:
            await node.join(a.me)
        for _ in range(16):
            for node in nodes:
                await node.check_predecessor()
                await node.stabilize()
                await node.fix_fingers()

        # starts of node 2 on a ring of 16: 3, 4, 6, 10
        assert a.finger_table.targets() == [3, 9, 9, 13]

        network.fail(3)
        await a.stabilize()

        assert a.get_successor() == a.me
        assert (await a.find_successor(12)).ring_id == 13
        assert (await a.find_successor(10)).ring_id == 13

        await run_rounds(network, nodes, 4)

        assert ring_of(a) == (9, 13)


class TestStabilize:
    """Stabilize against scripted peer replies."""

    def make(self, port, node_id=3):
        node = ChordNode(f"n{node_id}", "localhost", 5000, port, m=4, node_id=node_id)
        node.state.set_successor(peer(10))
        return node

    @pytest.mark.asyncio
    async def test_adopts_closer_successor(self):
        port = StubPort()
        port.predecessor_reply = peer(7)
        node = self.make(port)

        await node.stabilize()

        assert node.state.successor_id() == 7
        assert port.notified == [7]

    @pytest.mark.asyncio
    async def test_ignores_predecessor_outside_interval(self):
        port = StubPort()
        port.predecessor_reply = peer(12)
        node = self.make(port)

        await node.stabilize()

        assert node.state.successor_id() == 10
        assert port.notified == [10]

    @pytest.mark.asyncio
    async def test_unreachable_successor_falls_back_to_self(self):
        port = StubPort()
        port.predecessor_reply = UNREACHABLE
        node = self.make(port)

        await node.stabilize()

        assert node.get_successor() == node.me
        # notifying ourselves never reaches the transport
        assert port.notified == []

    @pytest.mark.asyncio
    async def test_failed_notify_falls_back_to_self(self):
        port = StubPort()
        port.notify_reply = UNREACHABLE
        node = self.make(port)

        await node.stabilize()

        assert node.get_successor() == node.me
        assert port.notified == [10]

    @pytest.mark.asyncio
    async def test_successor_changed_during_call(self):
        """A successor written while the call was in flight is not overwritten."""
        port = StubPort()
        node = self.make(port)
        port.on_get_predecessor = lambda: node.state.set_successor(peer(5))
        port.predecessor_reply = peer(8)

        await node.stabilize()

        assert node.state.successor_id() == 5
        assert port.notified == [5]

    @pytest.mark.asyncio
    async def test_unreachable_after_successor_changed(self):
        port = StubPort()
        node = self.make(port)
        port.on_get_predecessor = lambda: node.state.set_successor(peer(5))
        port.predecessor_reply = UNREACHABLE

        await node.stabilize()

        assert node.state.successor_id() == 5

    @pytest.mark.asyncio
    async def test_predecessor_outside_ring_counts_as_unreachable(self):
        port = StubPort()
        port.predecessor_reply = NodeDescriptor(99, "localhost", 6099)
        node = self.make(port)

        await node.stabilize()

        assert node.get_successor() == node.me
        assert node.state.resolve(99) is None
        assert port.notified == []


class TestNotify:
    """Test predecessor adoption rules."""

    def test_notify_rules(self):
        node = ChordNode("n5", "localhost", 5000, StubPort(), m=4, node_id=5)

        # with no predecessor even ourselves is accepted
        assert node.notify(node.me)
        assert node.get_predecessor() == node.me

        # (5, 5) is every id but 5
        assert node.notify(peer(10))
        assert node.get_predecessor().ring_id == 10

        # 2 lies in (10, 5) going round the ring
        assert node.notify(peer(2))
        assert node.get_predecessor().ring_id == 2

        assert not node.notify(peer(12))
        assert not node.notify(node.me)
        assert node.get_predecessor().ring_id == 2
        assert node.state.resolve(12) is not None

    def test_candidate_outside_ring(self):
        node = ChordNode("n5", "localhost", 5000, StubPort(), m=4, node_id=5)

        assert not node.notify(NodeDescriptor(99, "h", 1))
        assert node.get_predecessor() is None
        assert node.state.resolve(99) is None


class TestCheckPredecessor:
    """Test predecessor liveness checks."""

    @pytest.mark.asyncio
    async def test_clears_dead_predecessor(self):
        network = LoopbackNetwork()
        a = make_node(network, 3)
        b = make_node(network, 10)
        await a.join(None)
        await b.join(a.me)
        await run_rounds(network, [a, b], 3)

        assert not await a.check_predecessor()

        network.fail(10)
        assert await a.check_predecessor()
        assert a.get_predecessor() is None
        assert not await a.check_predecessor()

    @pytest.mark.asyncio
    async def test_no_predecessor(self):
        network = LoopbackNetwork()
        a = make_node(network, 3)
        await a.join(None)
        assert not await a.check_predecessor()


class TestFixFingers:
    """Test finger refresh."""

    @pytest.mark.asyncio
    async def test_singleton_fingers_point_to_self(self):
        network = LoopbackNetwork()
        node = make_node(network, 2, m=3)
        await node.join(None)

        indices = [await node.fix_fingers() for _ in range(3)]

        assert indices == [1, 2, 0]
        assert node.finger_table.targets() == [2, 2, 2]

    @pytest.mark.asyncio
    async def test_fingers_after_convergence(self):
        network = LoopbackNetwork()
        a = make_node(network, 3)
        b = make_node(network, 10)
        await a.join(None)
        await b.join(a.me)
        await run_rounds(network, [a, b], 3)

        for _ in range(4):
            await a.fix_fingers()

        # starts of node 3 on a ring of 16: 4, 5, 7, 11
        assert a.finger_table.targets() == [10, 10, 10, 3]

    @pytest.mark.asyncio
    async def test_failed_lookup_is_absorbed(self):
        port = StubPort()
        node = ChordNode("n0", "localhost", 5000, port, m=4, node_id=0)
        node.state.set_successor(peer(1))

        # start of finger 1 is 2, routed through the unreachable successor
        assert await node.fix_fingers() is None
        assert node.finger_table.get_target(1) is None
        assert node.stabilizer.next_finger == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
