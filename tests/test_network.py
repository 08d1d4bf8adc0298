"""
Tests for the message protocol, the TCP transport and the network remote port.
"""

import asyncio

import pytest

from chord.node import ChordNode
from chord.remote import UNREACHABLE, RemoteError, TransportError
from chord.routing import NodeDescriptor
from communication.handlers import register_chord_handlers
from communication.message import (Message, MessageType, create_find_successor_msg,
                                   create_reply_msg, create_request_msg)
from communication.network import NetworkManager
from communication.remote_port import NetworkRemotePort

HOST = "127.0.0.1"


async def start_node(node_id, m=6):
    """A ChordNode served over TCP on a free port."""
    network = NetworkManager(node_id, HOST, 0)
    await network.start()
    me = NodeDescriptor(node_id, HOST, network.port)
    remote = NetworkRemotePort(network, me, timeout=2.0)
    node = ChordNode(f"n{node_id}", HOST, network.port, remote, m=m, node_id=node_id)
    register_chord_handlers(network, node)
    return node, network, remote


async def closed_port():
    """A port nothing listens on any more."""
    network = NetworkManager(0, HOST, 0)
    await network.start()
    port = network.port
    await network.stop()
    return port


class TestMessage:
    """Test message serialization."""

    def test_json_round_trip(self):
        msg = create_find_successor_msg(NodeDescriptor(5, HOST, 5000), 17, 2, "abc")
        restored = Message.from_bytes(msg.to_bytes())

        assert restored.msg_type == MessageType.FIND_SUCCESSOR
        assert restored.sender_id == 5
        assert restored.sender_address == f"{HOST}:5000"
        assert restored.data == {'identifier': 17, 'hops': 2}

    @pytest.mark.parametrize("payload", [
        "not json",
        "{}",
        '{"msg_type": "nonsense", "sender_id": 1, "sender_address": "x", "msg_id": "1"}',
    ])
    def test_malformed_message(self, payload):
        with pytest.raises(ValueError):
            Message.from_json(payload)


class TestNetworkManager:
    """Test framing and dispatch over real sockets."""

    @pytest.mark.asyncio
    async def test_request_reply(self):
        server = NetworkManager(1, HOST, 0)

        async def pong(msg):
            return create_request_msg(1, server.address, MessageType.PONG, msg.msg_id)

        server.register_handler(MessageType.PING, pong)
        await server.start()
        try:
            client = NetworkManager(2, HOST, 0)
            ping = create_request_msg(2, "client", MessageType.PING, "m-1")
            response = await client.send_message(server.address, ping, wait_response=True)

            assert response.msg_type == MessageType.PONG
            assert response.msg_id == "m-1"
        finally:
            await server.stop()

    @pytest.mark.asyncio
    async def test_missing_handler_answers_error(self):
        server = NetworkManager(1, HOST, 0)
        await server.start()
        try:
            client = NetworkManager(2, HOST, 0)
            ping = create_request_msg(2, "client", MessageType.PING, "m-1")
            response = await client.send_message(server.address, ping, wait_response=True)

            assert response.msg_type == MessageType.ERROR
            assert "ping" in response.data['error']
        finally:
            await server.stop()

    @pytest.mark.asyncio
    async def test_refused_connection_yields_none(self):
        port = await closed_port()
        client = NetworkManager(2, HOST, 0)
        ping = create_request_msg(2, "client", MessageType.PING, "m-1")

        assert await client.send_message(f"{HOST}:{port}", ping, wait_response=True,
                                         timeout=1.0) is None

    @pytest.mark.asyncio
    async def test_oversized_frame_is_dropped(self):
        server = NetworkManager(1, HOST, 0, max_message_size=64)
        await server.start()
        try:
            reader, writer = await asyncio.open_connection(HOST, server.port)
            writer.write((1000).to_bytes(4, byteorder='big'))
            await writer.drain()

            assert await asyncio.wait_for(reader.read(), timeout=2.0) == b""
            writer.close()
        finally:
            await server.stop()

    @pytest.mark.asyncio
    async def test_oversized_outgoing_message(self):
        server = NetworkManager(1, HOST, 0)
        await server.start()
        try:
            client = NetworkManager(2, HOST, 0, max_message_size=16)
            ping = create_request_msg(2, "client", MessageType.PING, "m-1")
            assert await client.send_message(server.address, ping, wait_response=True) is None
        finally:
            await server.stop()


class TestNetworkRemotePort:
    """Test Chord calls between nodes over TCP."""

    @pytest.mark.asyncio
    async def test_two_node_ring(self):
        a, a_net, _ = await start_node(5)
        b, b_net, b_remote = await start_node(40)
        try:
            await a.join(None)
            introducer = await b_remote.identify(a_net.address)
            assert introducer.ring_id == 5

            await b.join(introducer)
            for _ in range(3):
                await a.stabilize()
                await b.stabilize()

            assert a.get_successor().ring_id == 40
            assert a.get_predecessor().ring_id == 40
            assert b.get_successor().ring_id == 5
            assert b.get_predecessor().ring_id == 5

            assert (await b.add_key(20)).ring_id == 40
            assert (await b.add_key(50)).ring_id == 5
            assert a.get_keys() == [50]
            assert b.get_keys() == [20]

            assert await b.check_predecessor() is False
        finally:
            await a_net.stop()
            await b_net.stop()

    @pytest.mark.asyncio
    async def test_remote_failure_becomes_remote_error(self):
        a, a_net, _ = await start_node(5)
        b, b_net, b_remote = await start_node(40)
        try:
            await a.join(None)
            with pytest.raises(RemoteError):
                await b_remote.find_successor(a.me, 1000)
        finally:
            await a_net.stop()
            await b_net.stop()

    @pytest.mark.asyncio
    async def test_unreachable_peer(self):
        b, b_net, b_remote = await start_node(40)
        try:
            dead = NodeDescriptor(5, HOST, await closed_port())
            b_remote.timeout = 1.0

            assert await b_remote.get_predecessor(dead) is UNREACHABLE
            assert await b_remote.notify(dead, b.me) is UNREACHABLE
            assert await b_remote.health_check(dead) is False
            with pytest.raises(TransportError):
                await b_remote.find_successor(dead, 3)
            with pytest.raises(TransportError):
                await b_remote.assign_key(dead, 3)
            with pytest.raises(TransportError):
                await b_remote.identify(dead.endpoint)
        finally:
            await b_net.stop()

    @pytest.mark.asyncio
    async def test_ring_info_and_keys(self):
        a, a_net, _ = await start_node(5)
        try:
            await a.join(None)
            a.assign_key_local(9)

            client = NetworkManager(0, HOST, 0)
            info = await client.send_message(
                a_net.address,
                create_request_msg(0, "client", MessageType.GET_RING_INFO, "m-1"),
                wait_response=True,
            )
            keys = await client.send_message(
                a_net.address,
                create_request_msg(0, "client", MessageType.GET_KEYS, "m-2"),
                wait_response=True,
            )

            assert info.data['node_id'] == 5
            assert len(info.data['fingers']) == 6
            assert info.data['successor']['ring_id'] == 5
            assert keys.data == {'node_id': 5, 'keys': [9]}
        finally:
            await a_net.stop()


async def start_fake_peer(request_type, reply_type, data):
    """A peer that answers one request type with a fixed payload."""
    server = NetworkManager(9, HOST, 0)

    async def answer(msg):
        return create_reply_msg(9, server.address, reply_type, data, msg.msg_id)

    server.register_handler(request_type, answer)
    await server.start()
    return server


class TestMalformedPeers:
    """Replies we cannot decode or place on the ring count as failures."""

    @pytest.mark.asyncio
    async def test_predecessor_without_ring_id(self):
        fake = await start_fake_peer(MessageType.GET_PREDECESSOR,
                                     MessageType.GET_PREDECESSOR_REPLY,
                                     {'predecessor': {'address': 'h'}})
        b, b_net, b_remote = await start_node(40)
        try:
            target = NodeDescriptor(9, HOST, fake.port)
            assert await b_remote.get_predecessor(target) is UNREACHABLE

            b.state.set_successor(target)
            await b.stabilize()
            assert b.get_successor() == b.me
        finally:
            await fake.stop()
            await b_net.stop()

    @pytest.mark.asyncio
    async def test_predecessor_outside_ring(self):
        fake = await start_fake_peer(MessageType.GET_PREDECESSOR,
                                     MessageType.GET_PREDECESSOR_REPLY,
                                     {'predecessor': {'ring_id': 99, 'address': HOST, 'port': 1}})
        b, b_net, _ = await start_node(40)
        try:
            b.state.set_successor(NodeDescriptor(9, HOST, fake.port))
            await b.stabilize()

            assert b.get_successor() == b.me
            assert b.state.resolve(99) is None
        finally:
            await fake.stop()
            await b_net.stop()

    @pytest.mark.asyncio
    async def test_garbled_successor(self):
        fake = await start_fake_peer(MessageType.FIND_SUCCESSOR,
                                     MessageType.FIND_SUCCESSOR_REPLY,
                                     {'successor': {'ring_id': 'x'}})
        b, b_net, b_remote = await start_node(40)
        try:
            with pytest.raises(TransportError):
                await b_remote.find_successor(NodeDescriptor(9, HOST, fake.port), 3)
        finally:
            await fake.stop()
            await b_net.stop()

    @pytest.mark.asyncio
    async def test_notify_candidate_outside_ring(self):
        a, a_net, _ = await start_node(5)
        b, b_net, b_remote = await start_node(40)
        try:
            await a.join(None)
            bogus = NodeDescriptor(99, HOST, 1)

            assert await b_remote.notify(a.me, bogus) is UNREACHABLE
            assert a.get_predecessor() is None

            assert await b_remote.notify(a.me, b.me) is True
            assert a.get_predecessor() == b.me
        finally:
            await a_net.stop()
            await b_net.stop()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
